"""
Flask web application for the Draft League Tracker.

Serves a JSON API over the league engine. All state lives in one document
(``state.json`` in the data directory), owned in memory by a ``Store`` and
written back to disk after every change.
"""
import os
import json
import logging
import time
import yaml
from datetime import date, datetime
from filelock import FileLock
from flask import Flask, request, jsonify, Response, abort

from league import roster
from league import tournament as engine
from league.bracket import get_phase_name
from league.document import export_document, import_document, state_to_document, tournament_to_dict
from league.errors import DocumentError
from league.hall_of_fame import hall_of_fame
from league.ids import new_id
from league.models import AppState, FORMATS, Player
from league.seeding import current_seeds
from league.standings import calculate_standings, group_progress, next_pending_match
from league.store import Store

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('TRACKER_DATA_DIR', os.path.join(BASE_DIR, 'data'))

STATE_FILE = os.path.join(DATA_DIR, 'state.json')
SETTINGS_FILE = os.path.join(DATA_DIR, 'settings.yaml')
MAX_UPLOAD_SIZE = 10 * 1024 * 1024  # 10 MB
app.config['MAX_CONTENT_LENGTH'] = MAX_UPLOAD_SIZE

QUICK_RESULTS = {'2-0': (2, 0), '1-1': (1, 1), '0-2': (0, 2),
                 '2-1': (2, 1), '1-2': (1, 2)}

_store = None
_disk_mtime = None     # mtime of state.json as last read or written by this process
_locks = {}


def _data_lock() -> FileLock:
    """One reentrant lock object per data directory, shared by every request."""
    os.makedirs(DATA_DIR, exist_ok=True)
    path = os.path.join(DATA_DIR, '.lock')
    if path not in _locks:
        _locks[path] = FileLock(path, timeout=10)
    return _locks[path]


def _state_file_mtime():
    try:
        return os.stat(STATE_FILE).st_mtime_ns
    except FileNotFoundError:
        return None


def get_default_settings():
    """Return default settings."""
    return {
        'initial_players': ['Antonio', 'Luca', 'Alessandro', 'Leonardo', 'Claudio', 'Lorenzo'],
        'export_prefix': 'mtg-tournaments-backup',
        'default_format': 'group-draft',
    }


def load_settings():
    """Load settings from YAML file, merging with defaults."""
    defaults = get_default_settings()
    if not os.path.exists(SETTINGS_FILE):
        return defaults
    try:
        with open(SETTINGS_FILE, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        app.logger.warning(f'Failed to parse {SETTINGS_FILE}: {e}')
        return defaults
    if not isinstance(data, dict):
        return defaults
    for key, value in defaults.items():
        if key not in data:
            data[key] = value
    return data


def save_settings(settings):
    """Save settings to YAML file."""
    with _data_lock():
        with open(SETTINGS_FILE, 'w', encoding='utf-8') as f:
            yaml.dump(settings, f, default_flow_style=False, allow_unicode=True)


def initial_state(settings=None) -> AppState:
    """Fresh install: the configured starting roster, no tournaments."""
    settings = settings or load_settings()
    players = [Player(new_id('p'), str(name).strip(), True)
               for name in settings.get('initial_players', []) if str(name).strip()]
    return AppState(roster.sort_players(players), ())


def load_state() -> AppState:
    """Load the league document, or start a new league when there is none."""
    global _disk_mtime
    with _data_lock():
        if not os.path.exists(STATE_FILE):
            _disk_mtime = None
            return initial_state()
        with open(STATE_FILE, 'r', encoding='utf-8') as f:
            text = f.read()
        mtime = _state_file_mtime()
        try:
            state = import_document(text)
        except DocumentError as e:
            # keep the unreadable file aside instead of overwriting it on the next save
            backup = f"{STATE_FILE}.corrupt-{datetime.now().strftime('%Y%m%d_%H%M%S')}"
            os.replace(STATE_FILE, backup)
            app.logger.warning(f'Failed to load {STATE_FILE} ({e}); moved to {backup}')
            _disk_mtime = None
            return initial_state()
        _disk_mtime = mtime
        return state


def save_state(version, state):
    """Write the league document atomically."""
    global _disk_mtime
    with _data_lock():
        tmp_path = f'{STATE_FILE}.tmp'
        with open(tmp_path, 'w', encoding='utf-8') as f:
            f.write(export_document(state))
        os.replace(tmp_path, STATE_FILE)
        _disk_mtime = _state_file_mtime()
    app.logger.debug(f'Saved state version {version}')


def get_store() -> Store:
    """
    The league store, brought up to date with state.json.

    Another process sharing the data directory may have saved since this
    one last read or wrote the file; in that case the file wins.
    """
    global _store
    with _data_lock():
        if _store is None:
            _store = Store(load_state())
            _store.subscribe(save_state)
        elif _state_file_mtime() not in (None, _disk_mtime):
            app.logger.info(f'{STATE_FILE} changed on disk, reloading')
            _store.replace(load_state(), notify=False)
    return _store


def dispatch(operation, *args):
    """Run an engine operation with the data directory locked from reload to save."""
    with _data_lock():
        return get_store().dispatch(operation, *args)


def reset_store():
    """Drop the in-memory store so the next request reloads from disk."""
    global _store, _disk_mtime
    _store = None
    _disk_mtime = None


def _payload() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _as_int(value):
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return value


def _get_tournament_or_404(tournament_id):
    found = get_store().state.tournament(tournament_id)
    if found is None:
        abort(404)
    return found


def _tournament_summary(state, t):
    return {
        'id': t.id,
        'name': t.name,
        'date': t.date,
        'format': t.format,
        'stage': t.stage,
        'winner_id': t.winner_id,
        'winner_name': roster.player_name(state.players, t.winner_id) if t.winner_id else None,
    }


def _tournament_detail(state, t):
    done, total = group_progress(t)
    pending = next_pending_match(t)
    data = tournament_to_dict(t)
    data['standings'] = calculate_standings(state.players, t)
    data['progress'] = {'done': done, 'total': total}
    data['next_pending'] = pending.id if pending else None
    data['can_close_group'] = engine.can_close_group(t)
    data['seeds'] = current_seeds(state.players, t)
    data['phase_labels'] = {m.id: get_phase_name(m.phase) for m in t.playoff_matches}
    return data


def _result(state, changed, tournament_id=None, **extra):
    body = {'success': changed, 'changed': changed}
    if tournament_id is not None:
        body['tournament'] = _tournament_detail(state, state.tournament(tournament_id))
    body.update(extra)
    return jsonify(body)


@app.route('/api/state')
def api_state():
    """The whole league document."""
    return jsonify(state_to_document(get_store().state))


@app.route('/api/hall-of-fame')
def api_hall_of_fame():
    state = get_store().state
    return jsonify(hall_of_fame(state.players, state.tournaments))


@app.route('/api/players', methods=['GET'])
def api_players():
    state = get_store().state
    return jsonify({
        'players': [{'id': p.id, 'name': p.name, 'active': p.active}
                    for p in roster.sort_players(state.players)],
        'default_selection': list(roster.default_selection(state)),
    })


@app.route('/api/players', methods=['POST'])
def api_add_player():
    """Add a player to the roster."""
    player_id = new_id('p')
    state, changed = dispatch(roster.add_player, _payload().get('name', ''), player_id)
    if not changed:
        return _result(state, False, error='Player name required.')
    player = state.player(player_id)
    return _result(state, True, player={'id': player.id, 'name': player.name, 'active': player.active})


@app.route('/api/players/<player_id>/rename', methods=['POST'])
def api_rename_player(player_id):
    state, changed = dispatch(roster.rename_player, player_id, _payload().get('name', ''))
    return _result(state, changed)


@app.route('/api/players/<player_id>/toggle', methods=['POST'])
def api_toggle_player(player_id):
    state, changed = dispatch(roster.toggle_player_active, player_id)
    return _result(state, changed)


@app.route('/api/tournaments', methods=['GET'])
def api_tournaments():
    """Tournaments in display order: running ones first."""
    state = get_store().state
    return jsonify({'tournaments': [_tournament_summary(state, t)
                                    for t in engine.list_tournaments_for_display(state)]})


@app.route('/api/tournaments', methods=['POST'])
def api_create_tournament():
    """Create a tournament; participants default to the active players."""
    data = _payload()
    store = get_store()
    settings = load_settings()
    participant_ids = data.get('participant_ids')
    if participant_ids is None:
        participant_ids = roster.default_selection(store.state)
    tournament_id = new_id('t')

    state, changed = dispatch(
        engine.create_tournament,
        data.get('name', ''),
        data.get('date') or date.today().isoformat(),
        data.get('format') or settings['default_format'],
        participant_ids,
        int(time.time() * 1000),
        tournament_id,
    )
    if not changed:
        return _result(state, False,
                       error='A tournament needs a name, a valid date and format, and at least 4 players.')
    return _result(state, True, tournament_id)


@app.route('/api/tournaments/<tournament_id>')
def api_tournament(tournament_id):
    t = _get_tournament_or_404(tournament_id)
    return jsonify(_tournament_detail(get_store().state, t))


@app.route('/api/tournaments/<tournament_id>/group/<match_id>', methods=['POST'])
def api_group_result(tournament_id, match_id):
    """Record a group result, as wins_a/wins_b or a quick "2-0" style result."""
    _get_tournament_or_404(tournament_id)
    data = _payload()
    if 'result' in data:
        wins_a, wins_b = QUICK_RESULTS.get(str(data['result']), (None, None))
    else:
        wins_a, wins_b = _as_int(data.get('wins_a')), _as_int(data.get('wins_b'))
    state, changed = dispatch(engine.set_group_result, tournament_id, match_id, wins_a, wins_b)
    return _result(state, changed, tournament_id)


@app.route('/api/tournaments/<tournament_id>/group/<match_id>/reset', methods=['POST'])
def api_group_reset(tournament_id, match_id):
    _get_tournament_or_404(tournament_id)
    state, changed = dispatch(engine.unset_group_result, tournament_id, match_id)
    return _result(state, changed, tournament_id)


@app.route('/api/tournaments/<tournament_id>/seeds', methods=['POST'])
def api_seed_override(tournament_id):
    """Set one seed slot (1-4) by hand."""
    _get_tournament_or_404(tournament_id)
    data = _payload()
    state, changed = dispatch(engine.set_seed_override, tournament_id,
                                          _as_int(data.get('slot')), data.get('player_id'))
    return _result(state, changed, tournament_id)


@app.route('/api/tournaments/<tournament_id>/seeds/reset', methods=['POST'])
def api_seed_reset(tournament_id):
    _get_tournament_or_404(tournament_id)
    state, changed = dispatch(engine.clear_seed_override, tournament_id)
    return _result(state, changed, tournament_id)


@app.route('/api/tournaments/<tournament_id>/close-group', methods=['POST'])
def api_close_group(tournament_id):
    """Close the group stage and generate the Top-4 playoffs."""
    _get_tournament_or_404(tournament_id)
    state, changed = dispatch(engine.close_group_stage, tournament_id)
    if not changed:
        return _result(state, False, tournament_id, error='Finish every group match first.')
    return _result(state, True, tournament_id)


@app.route('/api/tournaments/<tournament_id>/playoffs/<match_id>', methods=['POST'])
def api_playoff_result(tournament_id, match_id):
    _get_tournament_or_404(tournament_id)
    data = _payload()
    if 'result' in data:
        wins_a, wins_b = QUICK_RESULTS.get(str(data['result']), (None, None))
    else:
        wins_a, wins_b = _as_int(data.get('wins_a')), _as_int(data.get('wins_b'))
    state, changed = dispatch(engine.set_playoff_result, tournament_id, match_id, wins_a, wins_b)
    return _result(state, changed, tournament_id)


@app.route('/api/settings', methods=['GET'])
def api_settings():
    return jsonify(load_settings())


@app.route('/api/settings/update', methods=['POST'])
def api_update_settings():
    """AJAX endpoint for updating settings."""
    data = _payload()
    settings = load_settings()

    if 'export_prefix' in data:
        prefix = str(data['export_prefix']).strip()
        if not prefix:
            return jsonify({'success': False, 'error': 'Export prefix required.'})
        settings['export_prefix'] = prefix
    if 'default_format' in data:
        if data['default_format'] not in FORMATS:
            return jsonify({'success': False, 'error': f'Format must be one of {", ".join(FORMATS)}.'})
        settings['default_format'] = data['default_format']
    if 'initial_players' in data:
        names = data['initial_players']
        if not isinstance(names, list):
            return jsonify({'success': False, 'error': 'initial_players must be a list.'})
        settings['initial_players'] = [str(n).strip() for n in names if str(n).strip()]

    save_settings(settings)
    return jsonify({'success': True, 'settings': settings})


@app.route('/api/export')
def api_export():
    """Download the whole league as a JSON backup."""
    settings = load_settings()
    content = export_document(get_store().state)
    filename = f"{settings['export_prefix']}-{date.today().isoformat()}.json"
    app.logger.info(f'Exporting league to {filename}')
    return Response(
        content,
        mimetype='application/json',
        headers={'Content-Disposition': f'attachment; filename={filename}'}
    )


@app.route('/api/import', methods=['POST'])
def api_import():
    """Replace the whole league with an uploaded JSON backup."""
    file = request.files.get('file')
    if file is not None:
        if file.filename == '':
            return jsonify({'success': False, 'error': 'No file selected.'}), 400
        text = file.read()
    else:
        data = request.get_json(silent=True)
        if data is None:
            return jsonify({'success': False, 'error': 'No document provided.'}), 400
        text = json.dumps(data)

    try:
        new_state = import_document(text)
    except DocumentError as e:
        app.logger.warning(f'Rejected import: {e}')
        return jsonify({'success': False, 'error': str(e)}), 400

    with _data_lock():
        get_store().replace(new_state)
    app.logger.info(f'Imported {len(new_state.players)} players, {len(new_state.tournaments)} tournaments')
    return jsonify({'success': True,
                    'players': len(new_state.players),
                    'tournaments': len(new_state.tournaments)})


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    app.run(debug=True, port=5000)
