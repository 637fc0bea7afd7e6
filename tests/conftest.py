"""
Shared pytest fixtures for the league tracker tests.

Running tests:
    pytest tests/
"""
import pytest
import sys
import os
import yaml

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from league.models import AppState, Player
from league.roster import sort_players
from league_helpers import new_tournament, play_group, alphabetical_scores


@pytest.fixture
def four_players():
    """Roster of A, B, C, D with ids a, b, c, d."""
    return AppState(sort_players([Player(n.lower(), n) for n in ('D', 'B', 'A', 'C')]))


@pytest.fixture
def six_players():
    return AppState(sort_players([Player(n.lower(), n) for n in ('A', 'B', 'C', 'D', 'E', 'F')]))


@pytest.fixture
def group_state(four_players):
    """Four-player tournament 't1' with nothing played yet."""
    return new_tournament(four_players)


@pytest.fixture
def closed_group_state(group_state):
    """Group of 't1' finished with every pair won 2-0 by the alphabetically-first player."""
    return play_group(group_state, 't1', alphabetical_scores)


@pytest.fixture
def temp_data_dir(tmp_path, monkeypatch):
    """Point the web app at a temporary data directory with a small roster."""
    import app as app_module

    data_dir = tmp_path / "data"
    data_dir.mkdir()
    settings_file = data_dir / "settings.yaml"
    settings_file.write_text(yaml.dump({
        'initial_players': ['Anna', 'Bruno', 'Carla', 'Dario', 'Elena'],
        'export_prefix': 'test-backup',
        'default_format': 'group-draft',
    }, default_flow_style=False))

    monkeypatch.setattr(app_module, 'DATA_DIR', str(data_dir))
    monkeypatch.setattr(app_module, 'STATE_FILE', str(data_dir / "state.json"))
    monkeypatch.setattr(app_module, 'SETTINGS_FILE', str(settings_file))
    app_module.reset_store()
    yield str(data_dir)
    app_module.reset_store()


@pytest.fixture
def client(temp_data_dir):
    """Flask test client bound to the temporary data directory."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client
