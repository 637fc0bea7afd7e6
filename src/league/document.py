"""
JSON document codec for the whole league state (export, import, storage).

Document layout::

    {
      "players": [{"id", "name", "active"}, ...],
      "tournaments": [{
        "id", "name", "date": "YYYY-MM-DD", "format": "group-draft"|"group-sealed",
        "participantIds": [...],
        "stage": "group"|"playoffs"|"finished",
        "groupMatches": [{"id", "a", "b", "winsA", "winsB", "done"}, ...],
        "playoffMatches": [{"id", "phase", "a", "b", "winsA", "winsB", "done"}, ...],
        "seedOverride"?: [4 ids], "winnerId"?: id, "createdAt": number
      }, ...]
    }

An unresolved final is written with ``a``/``b`` set to null. ``stage`` and
``winnerId`` are written for readers of the file but never trusted on the
way in: they must agree with what the matches say.

Documents saved by the earlier browser version of the tracker (``dateISO``,
``type``, ``playerIds``, ``rrMatches``, ``poMatches``, phases ``SF1``/``SF2``/``F``,
stages ``roundrobin``/``done``) are read as well.
"""
import json
import logging
from datetime import datetime
from itertools import combinations

from .errors import DocumentError
from .models import (FINAL, FINISHED_STAGE, FORMATS, GROUP_GAMES, MIN_PARTICIPANTS, PHASES,
                     PLAYOFF_WINS, SEED_COUNT, SEMIFINAL1, SEMIFINAL2, STAGES, UNRESOLVED, AppState,
                     GroupMatch, Player, PlayoffMatch, Resolved, Tournament)

logger = logging.getLogger(__name__)

LEGACY_STAGES = {'roundrobin': 'group', 'playoffs': 'playoffs', 'done': 'finished'}
LEGACY_FORMATS = {'draft': 'group-draft', 'sealed': 'group-sealed'}
LEGACY_PHASES = {'SF1': SEMIFINAL1, 'SF2': SEMIFINAL2, 'F': FINAL}


# --- export -----------------------------------------------------------------

def _group_match_to_dict(match):
    return {
        'id': match.id,
        'a': match.player_a,
        'b': match.player_b,
        'winsA': match.wins_a,
        'winsB': match.wins_b,
        'done': match.done,
    }


def _playoff_match_to_dict(match):
    return {
        'id': match.id,
        'phase': match.phase,
        'a': match.player_a,
        'b': match.player_b,
        'winsA': match.wins_a,
        'winsB': match.wins_b,
        'done': match.done,
    }


def tournament_to_dict(tournament):
    data = {
        'id': tournament.id,
        'name': tournament.name,
        'date': tournament.date,
        'format': tournament.format,
        'participantIds': list(tournament.participant_ids),
        'stage': tournament.stage,
        'groupMatches': [_group_match_to_dict(m) for m in tournament.group_matches],
        'playoffMatches': [_playoff_match_to_dict(m) for m in tournament.playoff_matches],
    }
    if tournament.seed_override is not None:
        data['seedOverride'] = list(tournament.seed_override)
    if tournament.winner_id is not None:
        data['winnerId'] = tournament.winner_id
    data['createdAt'] = tournament.created_at
    return data


def state_to_document(state) -> dict:
    return {
        'players': [{'id': p.id, 'name': p.name, 'active': p.active} for p in state.players],
        'tournaments': [tournament_to_dict(t) for t in state.tournaments],
    }


def export_document(state) -> str:
    """Serialize the state; the same state always gives the same text."""
    return json.dumps(state_to_document(state), indent=2, ensure_ascii=False)


# --- import -----------------------------------------------------------------

def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


def _require(condition, message):
    if not condition:
        raise DocumentError(message)


def _require_id(value, what):
    _require(isinstance(value, str) and value != '', f"{what} must be a non-empty string")
    return value


def _player_from_dict(data):
    _require(isinstance(data, dict), "player entries must be objects")
    player_id = _require_id(data.get('id'), "player id")
    name = data.get('name')
    _require(isinstance(name, str) and name.strip() != '', f"player {player_id} has no name")
    active = data.get('active', True)
    _require(isinstance(active, bool), f"player {player_id}: active must be a boolean")
    return Player(player_id, name, active)


def _scores(data, where):
    wins_a = data.get('winsA', 0)
    wins_b = data.get('winsB', 0)
    done = data.get('done', False)
    _require(_is_int(wins_a) and _is_int(wins_b), f"{where}: wins must be integers")
    _require(isinstance(done, bool), f"{where}: done must be a boolean")
    return wins_a, wins_b, done


def _group_match_from_dict(data, where):
    _require(isinstance(data, dict), f"{where}: group matches must be objects")
    match_id = _require_id(data.get('id'), f"{where}: group match id")
    where = f"{where}, group match {match_id}"
    player_a = _require_id(data.get('a'), f"{where}: player a")
    player_b = _require_id(data.get('b'), f"{where}: player b")
    wins_a, wins_b, done = _scores(data, where)
    if done:
        _require(0 <= wins_a <= GROUP_GAMES and 0 <= wins_b <= GROUP_GAMES
                 and wins_a + wins_b == GROUP_GAMES,
                 f"{where}: finished group match must be 2-0, 1-1 or 0-2")
    else:
        _require(wins_a == 0 and wins_b == 0, f"{where}: unfinished group match must be 0-0")
    return GroupMatch(match_id, player_a, player_b, wins_a, wins_b, done)


def _playoff_match_from_dict(data, where):
    _require(isinstance(data, dict), f"{where}: playoff matches must be objects")
    match_id = _require_id(data.get('id'), f"{where}: playoff match id")
    where = f"{where}, playoff match {match_id}"
    phase = LEGACY_PHASES.get(data.get('phase'), data.get('phase'))
    _require(phase in PHASES, f"{where}: unknown phase {data.get('phase')!r}")
    wins_a, wins_b, done = _scores(data, where)
    _require(0 <= wins_a <= PLAYOFF_WINS and 0 <= wins_b <= PLAYOFF_WINS,
             f"{where}: wins must be between 0 and {PLAYOFF_WINS}")
    _require(not (wins_a == PLAYOFF_WINS and wins_b == PLAYOFF_WINS), f"{where}: 2-2 is not a score")
    _require(done == (wins_a == PLAYOFF_WINS or wins_b == PLAYOFF_WINS),
             f"{where}: done does not match the score")
    player_a = data.get('a')
    player_b = data.get('b')
    if player_a is None and player_b is None:
        _require(phase == FINAL, f"{where}: only the final can be unresolved")
        pairing = UNRESOLVED
    else:
        pairing = Resolved(_require_id(player_a, f"{where}: player a"),
                           _require_id(player_b, f"{where}: player b"))
    return PlayoffMatch(match_id, phase, pairing, wins_a, wins_b, done)


def _check_date(value, where):
    _require(isinstance(value, str), f"{where}: date must be a string")
    try:
        datetime.strptime(value, '%Y-%m-%d')
    except ValueError:
        raise DocumentError(f"{where}: date {value!r} is not YYYY-MM-DD") from None
    return value


def _check_group(participants, matches, where):
    expected = {frozenset(pair) for pair in combinations(participants, 2)}
    seen = set()
    for match in matches:
        pair = frozenset((match.player_a, match.player_b))
        _require(len(pair) == 2, f"{where}: {match.id} pairs a player with themselves")
        _require(pair in expected, f"{where}: {match.id} pairs players outside the tournament")
        _require(pair not in seen, f"{where}: {match.id} repeats a pairing")
        seen.add(pair)
    _require(seen == expected, f"{where}: the round-robin is incomplete")


def _check_playoffs(participants, matches, where):
    """Bracket consistency; returns the playoff matches with the final settled."""
    by_phase = {}
    for match in matches:
        _require(match.phase not in by_phase, f"{where}: phase {match.phase} appears twice")
        by_phase[match.phase] = match
    _require(set(by_phase) == set(PHASES), f"{where}: bracket must have two semifinals and a final")

    sf1, sf2, final = by_phase[SEMIFINAL1], by_phase[SEMIFINAL2], by_phase[FINAL]
    seeds = [sf1.player_a, sf1.player_b, sf2.player_a, sf2.player_b]
    _require(len(set(seeds)) == SEED_COUNT, f"{where}: semifinal players must be four different players")
    _require(all(pid in participants for pid in seeds), f"{where}: semifinal players must be participants")

    w1, w2 = sf1.winner(), sf2.winner()
    if w1 is not None and w2 is not None:
        _require(final.resolved and final.pairing.pair == frozenset((w1, w2)),
                 f"{where}: final must be played by the semifinal winners")
        return matches

    # before both semifinals are decided the final has no players; old
    # files carry a placeholder pair here, which is dropped
    _require(final.wins_a == 0 and final.wins_b == 0 and not final.done,
             f"{where}: final has a score before both semifinals are decided")
    if final.resolved:
        settled = final.replace(pairing=UNRESOLVED)
        return tuple(settled if m.phase == FINAL else m for m in matches)
    return matches


def _tournament_from_dict(data, roster):
    _require(isinstance(data, dict), "tournament entries must be objects")
    tournament_id = _require_id(data.get('id'), "tournament id")
    where = f"tournament {tournament_id}"

    name = data.get('name')
    _require(isinstance(name, str) and name.strip() != '', f"{where} has no name")
    date = _check_date(data.get('date', data.get('dateISO')), where)
    raw_format = data.get('format', data.get('type'))
    tournament_format = LEGACY_FORMATS.get(raw_format, raw_format)
    _require(tournament_format in FORMATS, f"{where}: unknown format {raw_format!r}")

    participants = data.get('participantIds', data.get('playerIds'))
    _require(isinstance(participants, list), f"{where}: participantIds must be a list")
    for pid in participants:
        _require_id(pid, f"{where}: participant id")
    _require(len(participants) >= MIN_PARTICIPANTS, f"{where}: needs at least {MIN_PARTICIPANTS} participants")
    _require(len(set(participants)) == len(participants), f"{where}: participants repeat")
    _require(all(pid in roster for pid in participants), f"{where}: participants missing from the roster")

    raw_group = data.get('groupMatches', data.get('rrMatches', []))
    raw_playoffs = data.get('playoffMatches', data.get('poMatches', []))
    _require(isinstance(raw_group, list) and isinstance(raw_playoffs, list), f"{where}: matches must be lists")
    group_matches = tuple(_group_match_from_dict(m, where) for m in raw_group)
    _check_group(participants, group_matches, where)

    playoff_matches = tuple(_playoff_match_from_dict(m, where) for m in raw_playoffs)
    if playoff_matches:
        _require(all(m.done for m in group_matches), f"{where}: playoffs started before the group ended")
        playoff_matches = _check_playoffs(set(participants), playoff_matches, where)

    seed_override = data.get('seedOverride')
    if seed_override is not None:
        _require(isinstance(seed_override, list) and len(seed_override) == SEED_COUNT
                 and len(set(seed_override)) == SEED_COUNT
                 and all(pid in participants for pid in seed_override),
                 f"{where}: seedOverride must be {SEED_COUNT} different participants")

    created_at = data.get('createdAt', 0)
    _require(isinstance(created_at, (int, float)) and not isinstance(created_at, bool),
             f"{where}: createdAt must be a number")

    tournament = Tournament(
        id=tournament_id,
        name=name,
        date=date,
        format=tournament_format,
        participant_ids=participants,
        group_matches=group_matches,
        playoff_matches=playoff_matches,
        seed_override=seed_override,
        created_at=created_at,
    )

    raw_stage = data.get('stage')
    stage = LEGACY_STAGES.get(raw_stage, raw_stage)
    _require(stage in STAGES, f"{where}: unknown stage {raw_stage!r}")
    _require(stage == tournament.stage, f"{where}: stage {stage!r} disagrees with its matches ({tournament.stage})")
    winner_id = data.get('winnerId')
    _require(winner_id == tournament.winner_id,
             f"{where}: winnerId disagrees with the final")
    _require((stage == FINISHED_STAGE) == (winner_id is not None), f"{where}: winner set outside the finished stage")
    return tournament


def document_to_state(data) -> AppState:
    """
    Build and validate a state from a decoded document.

    Raises DocumentError when the top-level arrays are missing or any
    entity breaks the model's invariants.
    """
    _require(isinstance(data, dict), "document must be a JSON object")
    _require(isinstance(data.get('players'), list) and isinstance(data.get('tournaments'), list),
             "document must contain 'players' and 'tournaments' lists")

    players = tuple(_player_from_dict(p) for p in data['players'])
    roster = {p.id for p in players}
    _require(len(roster) == len(players), "player ids repeat")

    tournaments = tuple(_tournament_from_dict(t, roster) for t in data['tournaments'])
    _require(len({t.id for t in tournaments}) == len(tournaments), "tournament ids repeat")

    return AppState(players, tournaments)


def import_document(text) -> AppState:
    """Decode a JSON document (str or bytes) into a validated state."""
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise DocumentError(f"not a JSON document: {e}") from e
    state = document_to_state(data)
    logger.info(f"Imported {len(state.players)} players and {len(state.tournaments)} tournaments")
    return state
