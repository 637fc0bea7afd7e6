"""
Career statistics across every finished tournament.
"""
from typing import Dict

from .models import FINISHED_STAGE, SEMIFINAL1, SEMIFINAL2
from .roster import name_key, player_name
from .tournament import extract_order_number


def hall_of_fame(players, tournaments) -> Dict:
    """
    Build the career leaderboard and the list of finished tournaments.

    Returns: {'leaderboard': [{'id', 'name', 'titles', 'finals_appearances',
                               'top4_appearances'}, ...],
              'finished': [{'id', 'name', 'date', 'champion_id',
                            'champion_name', 'runner_up_id',
                            'runner_up_name'}, ...]}

    Only finished tournaments count. A final appearance is a title or a lost
    final; a top-4 appearance is a semifinal spot. The leaderboard has one
    row per roster player, ranked titles -> finals -> top 4 -> name.
    Finished tournaments are listed by the number leading their name, then
    name, with the date only separating identical names.
    """
    rows = {}
    for player in players:
        rows[player.id] = {
            'id': player.id,
            'name': player.name,
            'titles': 0,
            'finals_appearances': 0,
            'top4_appearances': 0,
        }

    finished = []
    for tournament in tournaments:
        champion = tournament.winner_id
        if tournament.stage != FINISHED_STAGE or champion is None:
            continue
        runner_up = tournament.final.loser()

        finished.append({
            'id': tournament.id,
            'name': tournament.name,
            'date': tournament.date,
            'champion_id': champion,
            'champion_name': player_name(players, champion),
            'runner_up_id': runner_up,
            'runner_up_name': player_name(players, runner_up) if runner_up else None,
        })

        if champion in rows:
            rows[champion]['titles'] += 1
            rows[champion]['finals_appearances'] += 1
        if runner_up in rows:
            rows[runner_up]['finals_appearances'] += 1

        top4 = set()
        for phase in (SEMIFINAL1, SEMIFINAL2):
            semifinal = tournament.playoff_match(phase)
            if semifinal is not None and semifinal.resolved:
                top4.update((semifinal.player_a, semifinal.player_b))
        for pid in top4:
            if pid in rows:
                rows[pid]['top4_appearances'] += 1

    leaderboard = sorted(
        rows.values(),
        key=lambda r: (-r['titles'], -r['finals_appearances'], -r['top4_appearances'], name_key(r['name']))
    )

    def finished_key(entry):
        number = extract_order_number(entry['name'])
        return (0 if number is not None else 1, number or 0, name_key(entry['name']), entry['date'] or '')

    finished.sort(key=finished_key)
    return {'leaderboard': leaderboard, 'finished': finished}
