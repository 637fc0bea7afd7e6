"""
Round-robin schedule generation for the group stage.
"""
import logging
from itertools import combinations
from typing import Sequence, Tuple

from .ids import new_id
from .models import GroupMatch, MIN_PARTICIPANTS

logger = logging.getLogger(__name__)


def build_group_matches(participant_ids: Sequence[str]) -> Tuple[GroupMatch, ...]:
    """
    Create one unplayed match per unordered pair of participants.

    Pairs come out in double-loop order over the input: (0,1), (0,2), ...,
    (0,n-1), (1,2), ... which is only a display default. Returns an empty
    schedule for fewer than four participants or duplicated ids.
    """
    ids = list(participant_ids)
    if len(ids) < MIN_PARTICIPANTS:
        logger.debug(f"Not scheduling a group of {len(ids)} players (minimum {MIN_PARTICIPANTS})")
        return ()
    if len(set(ids)) != len(ids):
        logger.debug("Not scheduling a group with duplicated participants")
        return ()

    return tuple(GroupMatch(new_id('gm'), player_a, player_b)
                 for player_a, player_b in combinations(ids, 2))


def expected_match_count(num_players: int) -> int:
    return num_players * (num_players - 1) // 2
