"""
Group-stage standings.
"""
from typing import Dict, List, Optional, Tuple

from .models import GroupMatch
from .roster import name_key, player_name


def calculate_standings(players, tournament) -> List[Dict]:
    """
    Calculate the group table for a tournament from its finished matches.

    Returns: [{'id': id, 'name': name, 'points': n, 'games_for': n,
               'games_against': n, 'diff': n}, ...] one row per participant.

    Points are game wins, not match wins: a 2-0 is worth two points and a
    1-1 draw gives one point to each side. Unfinished matches count for
    nothing, so partial tables are valid at any time.

    Ranking: points -> game differential -> name (case and accent
    insensitive).
    """
    rows = {}
    for pid in tournament.participant_ids:
        rows[pid] = {
            'id': pid,
            'name': player_name(players, pid),
            'points': 0,
            'games_for': 0,
            'games_against': 0,
            'diff': 0,
        }

    for match in tournament.group_matches:
        if not match.done:
            continue
        row_a = rows.get(match.player_a)
        row_b = rows.get(match.player_b)
        if row_a is None or row_b is None:
            continue

        row_a['points'] += match.wins_a
        row_b['points'] += match.wins_b

        row_a['games_for'] += match.wins_a
        row_a['games_against'] += match.wins_b
        row_b['games_for'] += match.wins_b
        row_b['games_against'] += match.wins_a

    for row in rows.values():
        row['diff'] = row['games_for'] - row['games_against']

    return sorted(rows.values(), key=lambda r: (-r['points'], -r['diff'], name_key(r['name'])))


def group_progress(tournament) -> Tuple[int, int]:
    """(finished, total) group matches."""
    finished = sum(1 for m in tournament.group_matches if m.done)
    return finished, len(tournament.group_matches)


def next_pending_match(tournament) -> Optional[GroupMatch]:
    """First unplayed group match in schedule order, for quick result entry."""
    for match in tournament.group_matches:
        if not match.done:
            return match
    return None
