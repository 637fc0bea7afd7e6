"""
Roster management: adding, renaming and (de)activating players.

Players are never removed. Deactivating only drops them from the default
selection offered when a new tournament is created.
"""
import logging
import unicodedata

from .ids import new_id
from .models import Player

logger = logging.getLogger(__name__)

UNKNOWN_PLAYER_NAME = "—"


def name_key(name: str) -> str:
    """Collation key that ignores case and accents ("Élodie" sorts with "elodie")."""
    decomposed = unicodedata.normalize('NFKD', name or '')
    stripped = ''.join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold()


def sort_players(players):
    return tuple(sorted(players, key=lambda p: name_key(p.name)))


def player_name(players, player_id) -> str:
    for player in players:
        if player.id == player_id:
            return player.name
    return UNKNOWN_PLAYER_NAME


def add_player(state, name, player_id=None):
    """Append an active player; blank names leave the state untouched."""
    clean = name.strip() if isinstance(name, str) else ''
    if not clean:
        logger.debug("Refusing to add a player with a blank name")
        return state
    player_id = player_id or new_id('p')
    if state.player(player_id) is not None:
        logger.debug(f"Player id {player_id} already exists")
        return state
    players = sort_players(state.players + (Player(player_id, clean, True),))
    return state.replace(players=players)


def rename_player(state, player_id, name):
    clean = name.strip() if isinstance(name, str) else ''
    current = state.player(player_id)
    if not clean or current is None or current.name == clean:
        return state
    players = tuple(p.replace(name=clean) if p.id == player_id else p for p in state.players)
    return state.replace(players=sort_players(players))


def toggle_player_active(state, player_id):
    if state.player(player_id) is None:
        return state
    players = tuple(p.replace(active=not p.active) if p.id == player_id else p for p in state.players)
    return state.replace(players=players)


def default_selection(state):
    """Ids of active players sorted by name (imported rosters may be unsorted)."""
    return tuple(p.id for p in sort_players(state.players) if p.active)
