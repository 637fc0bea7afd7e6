"""
Top-4 seeding for the playoff bracket.

Seeds normally come straight from the group standings. An operator can
override the order (typically after settling a tie with an extra game);
edits to the override are cleaned so it always holds four distinct
participants.
"""
import logging
from typing import List, Optional, Sequence, Tuple

from .models import SEED_COUNT
from .standings import calculate_standings

logger = logging.getLogger(__name__)


def pick_top4(standings) -> List[str]:
    return [row['id'] for row in standings[:SEED_COUNT]]


def is_valid_override(seed_override) -> bool:
    return (seed_override is not None
            and len(seed_override) == SEED_COUNT
            and len(set(seed_override)) == SEED_COUNT)


def resolve_seeds(standings, seed_override=None) -> List[str]:
    """
    Seeds 1..4 for the bracket.

    A complete override (four distinct ids) is used verbatim, otherwise the
    top four of the standings. May return fewer than four ids when there are
    not enough participants; the bracket builder refuses such a list.
    """
    if is_valid_override(seed_override):
        return list(seed_override)
    return pick_top4(standings)


def current_seeds(players, tournament) -> List[str]:
    """The seeds the bracket would be built from right now."""
    return resolve_seeds(calculate_standings(players, tournament), tournament.seed_override)


def edit_seed_override(players, tournament, slot: int, player_id) -> Optional[Tuple[str, ...]]:
    """
    Place ``player_id`` at seed ``slot`` (1-4) and return the cleaned override.

    Starts from the stored override when it has four entries, otherwise from
    the automatic top four. Slots are then cleaned in order: a slot keeps
    its pick unless an earlier slot already holds that player or it is not
    a participant, in which case it gets the first participant (in
    participant order) not used by the slots before it. Earlier slots are
    never changed by an edit further down.

    Returns the existing override unchanged for an out-of-range slot.
    """
    if not isinstance(slot, int) or isinstance(slot, bool) or not 1 <= slot <= SEED_COUNT:
        logger.debug(f"Ignoring seed edit for invalid slot {slot!r}")
        return tournament.seed_override

    top4_default = pick_top4(calculate_standings(players, tournament))
    stored = tournament.seed_override
    if stored is not None and len(stored) == SEED_COUNT:
        base = list(stored)
    else:
        base = list(top4_default)
    while len(base) < SEED_COUNT:
        base.append(top4_default[len(base)] if len(base) < len(top4_default) else None)

    base[slot - 1] = player_id
    return _deduplicate(base, tournament.participant_ids)


def _deduplicate(picks: Sequence, candidates: Sequence[str]) -> Tuple[str, ...]:
    participants = set(candidates)
    cleaned = []
    used = set()
    for pick in picks:
        if pick not in participants or pick in used:
            free = next((c for c in candidates if c not in used), None)
            # fewer than four participants: cannot happen for a created tournament
            pick = free if free is not None else pick
        cleaned.append(pick)
        used.add(pick)
    return tuple(cleaned)
