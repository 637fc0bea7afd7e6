"""
Four-seed playoff bracket: two semifinals and a final.

Seed 1 meets seed 4 and seed 2 meets seed 3, so the top two seeds can only
meet in the final. The final starts ``Unresolved`` and gets its players
once both semifinals have a winner.
"""
import logging
from typing import Sequence, Tuple

from .ids import new_id
from .models import (FINAL, PLAYOFF_WINS, SEED_COUNT, SEMIFINAL1, SEMIFINAL2, UNRESOLVED,
                     PlayoffMatch, Resolved)

logger = logging.getLogger(__name__)


def get_phase_name(phase: str) -> str:
    """Display label for a playoff phase."""
    if phase == SEMIFINAL1:
        return "Semifinal 1 (1 vs 4)"
    elif phase == SEMIFINAL2:
        return "Semifinal 2 (2 vs 3)"
    elif phase == FINAL:
        return "Final"
    return phase


def build_playoffs(seeds: Sequence[str]) -> Tuple[PlayoffMatch, ...]:
    """
    Build semifinal 1 (s1 vs s4), semifinal 2 (s2 vs s3) and an unresolved final.

    Anything other than four distinct seeds yields an empty bracket.
    """
    seeds = list(seeds)
    if len(seeds) != SEED_COUNT or len(set(seeds)) != SEED_COUNT or not all(seeds):
        logger.debug(f"Not building a bracket from seeds {seeds}")
        return ()

    s1, s2, s3, s4 = seeds
    return (
        PlayoffMatch(new_id('po'), SEMIFINAL1, Resolved(s1, s4)),
        PlayoffMatch(new_id('po'), SEMIFINAL2, Resolved(s2, s3)),
        PlayoffMatch(new_id('po'), FINAL, UNRESOLVED),
    )


def is_valid_playoff_score(wins_a, wins_b) -> bool:
    """Bo3 scores: each side 0-2 and never 2-2."""
    for wins in (wins_a, wins_b):
        if not isinstance(wins, int) or isinstance(wins, bool) or not 0 <= wins <= PLAYOFF_WINS:
            return False
    return not (wins_a == PLAYOFF_WINS and wins_b == PLAYOFF_WINS)


def score_playoff_match(match: PlayoffMatch, wins_a: int, wins_b: int) -> PlayoffMatch:
    """Apply a score; the match is done as soon as a side reaches two wins."""
    done = wins_a == PLAYOFF_WINS or wins_b == PLAYOFF_WINS
    return match.replace(wins_a=wins_a, wins_b=wins_b, done=done)


def propagate_final(playoff_matches: Sequence[PlayoffMatch]) -> Tuple[PlayoffMatch, ...]:
    """
    Keep the final's players in line with the semifinal winners.

    With both semifinals decided the final becomes (winner sf1, winner sf2).
    If it already holds that pair, in either order, it is left alone so an
    entered score survives. Otherwise the pairing changes and the score is
    reset to 0-0. When a semifinal no longer has a winner the final goes
    back to unresolved.
    """
    matches = tuple(playoff_matches)
    by_phase = {m.phase: m for m in matches}
    sf1 = by_phase.get(SEMIFINAL1)
    sf2 = by_phase.get(SEMIFINAL2)
    final = by_phase.get(FINAL)
    if sf1 is None or sf2 is None or final is None:
        return matches

    w1 = sf1.winner()
    w2 = sf2.winner()
    if w1 is not None and w2 is not None:
        pairing = Resolved(w1, w2)
        if final.resolved and final.pairing.pair == pairing.pair:
            return matches
        logger.debug(f"Final pairing set to {w1} vs {w2}")
    else:
        pairing = UNRESOLVED
        if not final.resolved and final.wins_a == 0 and final.wins_b == 0 and not final.done:
            return matches

    new_final = final.replace(pairing=pairing, wins_a=0, wins_b=0, done=False)
    return tuple(new_final if m.phase == FINAL else m for m in matches)
