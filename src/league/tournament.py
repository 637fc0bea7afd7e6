"""
Tournament lifecycle: creation, result entry and stage transitions.

Every operation takes the current ``AppState`` and returns the next one.
A request that does not make sense for the current state (blank name,
invalid score, closing an unfinished group, ...) returns the very same
state object, so callers detect "nothing changed" with ``is``.

Stages run group -> playoffs -> finished. The move to the playoffs is an
explicit action guarded by a complete group; finishing happens by itself
when the final gets a winner, and undoing the final's result puts the
tournament back in the playoffs.
"""
import logging
import re
import time
from typing import List, Optional

from . import seeding
from .bracket import build_playoffs, is_valid_playoff_score, propagate_final, score_playoff_match
from .ids import new_id
from .models import FINISHED_STAGE, FORMATS, GROUP_GAMES, GROUP_STAGE, MIN_PARTICIPANTS, Tournament
from .roster import name_key
from .scheduler import build_group_matches
from .standings import calculate_standings

logger = logging.getLogger(__name__)

DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def find_tournament(state, tournament_id) -> Optional[Tournament]:
    return state.tournament(tournament_id)


def _update_tournament(state, tournament_id, change):
    """Apply ``change`` to one tournament; unchanged when it returns the same object."""
    current = state.tournament(tournament_id)
    if current is None:
        logger.debug(f"Unknown tournament {tournament_id}")
        return state
    updated = change(current)
    if updated is current:
        return state
    tournaments = tuple(updated if t.id == tournament_id else t for t in state.tournaments)
    return state.replace(tournaments=tournaments)


def create_tournament(state, name, date, format, participant_ids, created_at=None,
                      tournament_id=None):
    """
    Add a new tournament in the group stage, with its full round-robin.

    New tournaments go to the front of the list. Refused when the name is
    blank, the date is not YYYY-MM-DD, the format is unknown, or the
    participants are fewer than four, repeated or not on the roster.
    """
    clean = name.strip() if isinstance(name, str) else ''
    if not isinstance(participant_ids, (list, tuple)) or not all(isinstance(p, str) for p in participant_ids):
        logger.debug("Refusing participants that are not a list of ids")
        return state
    participant_ids = tuple(participant_ids)
    if not clean:
        logger.debug("Refusing to create a tournament with a blank name")
        return state
    if format not in FORMATS:
        logger.debug(f"Refusing unknown tournament format {format!r}")
        return state
    if not isinstance(date, str) or not DATE_RE.match(date):
        logger.debug(f"Refusing tournament date {date!r}")
        return state
    if len(participant_ids) < MIN_PARTICIPANTS or len(set(participant_ids)) != len(participant_ids):
        logger.debug(f"Refusing tournament with participants {list(participant_ids)}")
        return state
    roster = set(state.player_ids())
    if any(pid not in roster for pid in participant_ids):
        logger.debug("Refusing tournament with players missing from the roster")
        return state

    tournament_id = tournament_id or new_id('t')
    if state.tournament(tournament_id) is not None:
        return state
    tournament = Tournament(
        id=tournament_id,
        name=clean,
        date=date,
        format=format,
        participant_ids=participant_ids,
        group_matches=build_group_matches(participant_ids),
        created_at=created_at if created_at is not None else int(time.time() * 1000),
    )
    logger.info(f"Created tournament {tournament.name} with {len(participant_ids)} players")
    return state.replace(tournaments=(tournament,) + state.tournaments)


def is_valid_group_score(wins_a, wins_b) -> bool:
    for wins in (wins_a, wins_b):
        if not isinstance(wins, int) or isinstance(wins, bool) or not 0 <= wins <= GROUP_GAMES:
            return False
    return wins_a + wins_b == GROUP_GAMES


def _set_group_match(state, tournament_id, match_id, **fields):
    def change(tournament):
        if tournament.stage != GROUP_STAGE:
            logger.debug(f"Group results of {tournament.name} are frozen in stage {tournament.stage}")
            return tournament
        matches = tournament.group_matches
        target = next((m for m in matches if m.id == match_id), None)
        if target is None:
            return tournament
        updated = target.replace(**fields)
        if updated == target:
            return tournament
        return tournament.replace(
            group_matches=tuple(updated if m.id == match_id else m for m in matches))

    return _update_tournament(state, tournament_id, change)


def set_group_result(state, tournament_id, match_id, wins_a, wins_b):
    """Record a group result: 2-0, 1-1 or 0-2."""
    if not is_valid_group_score(wins_a, wins_b):
        logger.debug(f"Rejected group score {wins_a}-{wins_b}")
        return state
    return _set_group_match(state, tournament_id, match_id, wins_a=wins_a, wins_b=wins_b, done=True)


def unset_group_result(state, tournament_id, match_id):
    return _set_group_match(state, tournament_id, match_id, wins_a=0, wins_b=0, done=False)


def can_close_group(tournament) -> bool:
    return len(tournament.group_matches) > 0 and all(m.done for m in tournament.group_matches)


def close_group_stage(state, tournament_id):
    """Seed the top four (or the override) and open the playoffs."""
    players = state.players

    def change(tournament):
        if tournament.stage != GROUP_STAGE or not can_close_group(tournament):
            logger.debug(f"Group of {tournament.name} cannot be closed yet")
            return tournament
        seeds = seeding.resolve_seeds(calculate_standings(players, tournament), tournament.seed_override)
        bracket = build_playoffs(seeds)
        if not bracket:
            return tournament
        logger.info(f"Playoffs started for {tournament.name} with seeds {seeds}")
        return tournament.replace(playoff_matches=bracket)

    return _update_tournament(state, tournament_id, change)


def set_playoff_result(state, tournament_id, match_id, wins_a, wins_b):
    """
    Record a Bo3 score (0-2 each side, never 2-2) and re-derive the final.

    Scoring a final whose players are not known yet is refused. When the
    final reaches two wins for a side the tournament is finished with that
    side as winner; any later correction below two wins un-finishes it.
    """
    if not is_valid_playoff_score(wins_a, wins_b):
        logger.debug(f"Rejected playoff score {wins_a}-{wins_b}")
        return state

    def change(tournament):
        target = next((m for m in tournament.playoff_matches if m.id == match_id), None)
        if target is None:
            return tournament
        if not target.resolved:
            logger.debug("Final players are not known yet")
            return tournament
        scored = score_playoff_match(target, wins_a, wins_b)
        if scored == target:
            return tournament
        matches = tuple(scored if m.id == match_id else m for m in tournament.playoff_matches)
        updated = tournament.replace(playoff_matches=propagate_final(matches))
        if updated.stage != tournament.stage:
            logger.info(f"{tournament.name}: {tournament.stage} -> {updated.stage}")
        return updated

    return _update_tournament(state, tournament_id, change)


def set_seed_override(state, tournament_id, slot, player_id):
    """Put a participant at a seed slot (1-4); duplicates are cleaned up."""
    players = state.players

    def change(tournament):
        if tournament.stage != GROUP_STAGE or not isinstance(player_id, str):
            return tournament
        override = seeding.edit_seed_override(players, tournament, slot, player_id)
        if override == tournament.seed_override:
            return tournament
        return tournament.replace(seed_override=override)

    return _update_tournament(state, tournament_id, change)


def clear_seed_override(state, tournament_id):
    def change(tournament):
        if tournament.stage != GROUP_STAGE or tournament.seed_override is None:
            return tournament
        return tournament.replace(seed_override=None)

    return _update_tournament(state, tournament_id, change)


def extract_order_number(name: str) -> Optional[int]:
    """Leading number of a tournament name ("12° Draft" -> 12)."""
    match = re.match(r'^(\d+)', (name or '').strip())
    return int(match.group(1)) if match else None


def order_key(tournament):
    """Numbered tournaments first by number, the rest by name."""
    number = extract_order_number(tournament.name)
    if number is not None:
        return (0, number, name_key(tournament.name))
    return (1, 0, name_key(tournament.name))


def list_tournaments_for_display(state) -> List[Tournament]:
    """Unfinished tournaments first, then by the number in the name, then name."""
    return sorted(state.tournaments,
                  key=lambda t: ((1 if t.stage == FINISHED_STAGE else 0),) + order_key(t))
