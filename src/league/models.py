"""
Entities of the league: players, tournaments and their matches.

Instances are frozen dataclasses. Changes go through ``replace()`` which
returns a new object, and collections are held as tuples.
"""
from dataclasses import dataclass, replace as _replace
from typing import Optional, Tuple

GROUP_STAGE = 'group'
PLAYOFFS_STAGE = 'playoffs'
FINISHED_STAGE = 'finished'
STAGES = (GROUP_STAGE, PLAYOFFS_STAGE, FINISHED_STAGE)

DRAFT_FORMAT = 'group-draft'
SEALED_FORMAT = 'group-sealed'
FORMATS = (DRAFT_FORMAT, SEALED_FORMAT)

SEMIFINAL1 = 'semifinal1'
SEMIFINAL2 = 'semifinal2'
FINAL = 'final'
PHASES = (SEMIFINAL1, SEMIFINAL2, FINAL)

MIN_PARTICIPANTS = 4
SEED_COUNT = 4
GROUP_GAMES = 2         # every group meeting is exactly two games
PLAYOFF_WINS = 2        # best of three


class _Replaceable:
    def replace(self, **changes):
        """Copy with some fields changed; unknown field names raise TypeError."""
        return _replace(self, **changes)


@dataclass(frozen=True)
class Player(_Replaceable):
    id: str
    name: str
    active: bool = True


@dataclass(frozen=True)
class GroupMatch(_Replaceable):
    """A group-stage meeting: two games, so 2-0, 1-1 or 0-2 once done."""

    id: str
    player_a: str
    player_b: str
    wins_a: int = 0
    wins_b: int = 0
    done: bool = False

    def involves(self, player_id) -> bool:
        return player_id in (self.player_a, self.player_b)


@dataclass(frozen=True)
class Unresolved:
    """Pairing of a final whose semifinals are not both decided yet."""

    @property
    def pair(self):
        return None


@dataclass(frozen=True)
class Resolved:
    player_a: str
    player_b: str

    @property
    def pair(self):
        return frozenset((self.player_a, self.player_b))


UNRESOLVED = Unresolved()


@dataclass(frozen=True)
class PlayoffMatch(_Replaceable):
    """A best-of-three playoff match. Only the final can be ``Unresolved``."""

    id: str
    phase: str
    pairing: object
    wins_a: int = 0
    wins_b: int = 0
    done: bool = False

    @property
    def resolved(self) -> bool:
        return isinstance(self.pairing, Resolved)

    @property
    def player_a(self):
        return self.pairing.player_a if self.resolved else None

    @property
    def player_b(self):
        return self.pairing.player_b if self.resolved else None

    def winner(self):
        """Id of the side that reached two wins, or None."""
        if not self.done or not self.resolved:
            return None
        if self.wins_a > self.wins_b:
            return self.player_a
        if self.wins_b > self.wins_a:
            return self.player_b
        return None

    def loser(self):
        winner = self.winner()
        if winner is None:
            return None
        return self.player_b if winner == self.player_a else self.player_a


@dataclass(frozen=True)
class Tournament(_Replaceable):
    """
    One tournament: a round-robin group followed by a four-seed bracket.

    ``stage`` and ``winner_id`` are not stored. They are read off the
    matches every time, so correcting a final result moves the tournament
    back to the playoffs and clears the winner without extra bookkeeping.
    """

    id: str
    name: str
    date: str
    format: str
    participant_ids: Tuple[str, ...]
    group_matches: Tuple[GroupMatch, ...] = ()
    playoff_matches: Tuple[PlayoffMatch, ...] = ()
    seed_override: Optional[Tuple[str, ...]] = None
    created_at: int = 0

    def __post_init__(self):
        # accept lists from callers and decoders
        object.__setattr__(self, 'participant_ids', tuple(self.participant_ids))
        object.__setattr__(self, 'group_matches', tuple(self.group_matches))
        object.__setattr__(self, 'playoff_matches', tuple(self.playoff_matches))
        if self.seed_override is not None:
            object.__setattr__(self, 'seed_override', tuple(self.seed_override))

    def playoff_match(self, phase) -> Optional[PlayoffMatch]:
        for match in self.playoff_matches:
            if match.phase == phase:
                return match
        return None

    @property
    def final(self) -> Optional[PlayoffMatch]:
        return self.playoff_match(FINAL)

    @property
    def winner_id(self):
        final = self.final
        return final.winner() if final is not None else None

    @property
    def stage(self) -> str:
        if not self.playoff_matches:
            return GROUP_STAGE
        if self.winner_id is not None:
            return FINISHED_STAGE
        return PLAYOFFS_STAGE


@dataclass(frozen=True)
class AppState(_Replaceable):
    """The whole aggregate: roster plus every tournament, newest first."""

    players: Tuple[Player, ...] = ()
    tournaments: Tuple[Tournament, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'players', tuple(self.players))
        object.__setattr__(self, 'tournaments', tuple(self.tournaments))

    def player(self, player_id) -> Optional[Player]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def tournament(self, tournament_id) -> Optional[Tournament]:
        for tournament in self.tournaments:
            if tournament.id == tournament_id:
                return tournament
        return None

    def player_ids(self) -> Tuple:
        return tuple(p.id for p in self.players)
