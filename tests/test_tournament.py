"""
Tests for the tournament lifecycle: creation, results and stage transitions.

Refused operations must hand back the very same state object.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from league.models import (FINAL, FINISHED_STAGE, GROUP_STAGE, PLAYOFFS_STAGE, SEALED_FORMAT, SEMIFINAL1,
                           SEMIFINAL2, UNRESOLVED, Resolved)
from league.tournament import (can_close_group, clear_seed_override, close_group_stage, create_tournament,
                               extract_order_number, list_tournaments_for_display, set_group_result,
                               set_playoff_result, set_seed_override, unset_group_result)
from league_helpers import alphabetical_scores, finish_tournament, new_tournament, play_group, playoff, score


class TestCreateTournament:
    """Tests for tournament creation."""

    def test_creates_group_stage_with_schedule(self, four_players):
        state = new_tournament(four_players)
        t = state.tournament('t1')

        assert t.stage == GROUP_STAGE
        assert t.winner_id is None
        assert t.participant_ids == ('a', 'b', 'c', 'd')
        assert len(t.group_matches) == 6
        assert t.playoff_matches == ()
        assert t.name == '1° Draft'

    def test_newest_first(self, four_players):
        state = new_tournament(four_players, tournament_id='t1')
        state = new_tournament(state, tournament_id='t2', name='2° Draft')
        assert [t.id for t in state.tournaments] == ['t2', 't1']

    def test_name_is_trimmed(self, four_players):
        state = create_tournament(four_players, '  Sealed night ', '2026-02-01', SEALED_FORMAT,
                                  ['a', 'b', 'c', 'd'], tournament_id='t1')
        assert state.tournament('t1').name == 'Sealed night'
        assert state.tournament('t1').format == SEALED_FORMAT

    @pytest.mark.parametrize("name,date,fmt,ids", [
        ('   ', '2026-01-10', 'group-draft', ['a', 'b', 'c', 'd']),
        ('Cup', '2026-01-10', 'group-draft', ['a', 'b', 'c']),
        ('Cup', '2026-01-10', 'group-draft', ['a', 'b', 'c', 'c']),
        ('Cup', '2026-01-10', 'group-draft', ['a', 'b', 'c', 'zz']),
        ('Cup', '2026-01-10', 'swiss', ['a', 'b', 'c', 'd']),
        ('Cup', '10/01/2026', 'group-draft', ['a', 'b', 'c', 'd']),
        ('Cup', '2026-01-10', 'group-draft', 'abcd'),
    ])
    def test_invalid_requests_change_nothing(self, four_players, name, date, fmt, ids):
        assert create_tournament(four_players, name, date, fmt, ids) is four_players

    def test_inactive_players_can_still_take_part(self, four_players):
        players = tuple(p.replace(active=False) if p.id == 'a' else p for p in four_players.players)
        state = new_tournament(four_players.replace(players=players))
        assert 'a' in state.tournament('t1').participant_ids


class TestGroupResults:
    """Tests for group result entry."""

    @pytest.mark.parametrize("wins_a,wins_b", [(2, 0), (1, 1), (0, 2)])
    def test_valid_results(self, group_state, wins_a, wins_b):
        match = group_state.tournament('t1').group_matches[0]
        state = set_group_result(group_state, 't1', match.id, wins_a, wins_b)
        updated = state.tournament('t1').group_matches[0]
        assert (updated.wins_a, updated.wins_b, updated.done) == (wins_a, wins_b, True)

    @pytest.mark.parametrize("wins_a,wins_b", [(2, 1), (1, 0), (0, 0), (3, -1), (2, 2), (True, True), ('2', '0')])
    def test_invalid_results_rejected(self, group_state, wins_a, wins_b):
        match = group_state.tournament('t1').group_matches[0]
        assert set_group_result(group_state, 't1', match.id, wins_a, wins_b) is group_state

    def test_rejected_result_keeps_previous_score(self, group_state):
        match = group_state.tournament('t1').group_matches[0]
        state = set_group_result(group_state, 't1', match.id, 2, 0)
        assert set_group_result(state, 't1', match.id, 2, 1) is state
        assert state.tournament('t1').group_matches[0].wins_a == 2

    def test_unknown_match_or_tournament(self, group_state):
        assert set_group_result(group_state, 't1', 'nope', 2, 0) is group_state
        assert set_group_result(group_state, 'nope', 'nope', 2, 0) is group_state

    def test_unset_result(self, group_state):
        match = group_state.tournament('t1').group_matches[0]
        state = set_group_result(group_state, 't1', match.id, 1, 1)
        state = unset_group_result(state, 't1', match.id)
        updated = state.tournament('t1').group_matches[0]
        assert (updated.wins_a, updated.wins_b, updated.done) == (0, 0, False)

    def test_unset_unplayed_is_noop(self, group_state):
        match = group_state.tournament('t1').group_matches[0]
        assert unset_group_result(group_state, 't1', match.id) is group_state

    def test_previous_state_untouched(self, group_state):
        match = group_state.tournament('t1').group_matches[0]
        set_group_result(group_state, 't1', match.id, 2, 0)
        assert group_state.tournament('t1').group_matches[0].done is False


class TestCloseGroup:
    """Tests for the group -> playoffs transition."""

    def test_cannot_close_with_pending_matches(self, group_state):
        match = group_state.tournament('t1').group_matches[0]
        state = set_group_result(group_state, 't1', match.id, 2, 0)

        assert not can_close_group(state.tournament('t1'))
        assert close_group_stage(state, 't1') is state
        assert state.tournament('t1').stage == GROUP_STAGE
        assert state.tournament('t1').playoff_matches == ()

    def test_can_close_iff_all_done(self, closed_group_state):
        assert can_close_group(closed_group_state.tournament('t1'))

    def test_close_builds_bracket_from_standings(self, closed_group_state):
        state = close_group_stage(closed_group_state, 't1')
        t = state.tournament('t1')

        assert t.stage == PLAYOFFS_STAGE
        assert t.playoff_match(SEMIFINAL1).pairing == Resolved('a', 'd')
        assert t.playoff_match(SEMIFINAL2).pairing == Resolved('b', 'c')
        assert t.final.pairing == UNRESOLVED

    def test_close_uses_override(self, closed_group_state):
        state = set_seed_override(closed_group_state, 't1', 1, 'c')   # c, b, a, d
        assert state.tournament('t1').seed_override == ('c', 'b', 'a', 'd')
        state = close_group_stage(state, 't1')
        t = state.tournament('t1')

        assert t.playoff_match(SEMIFINAL1).pairing == Resolved('c', 'd')
        assert t.playoff_match(SEMIFINAL2).pairing == Resolved('b', 'a')

    def test_close_twice_is_noop(self, closed_group_state):
        state = close_group_stage(closed_group_state, 't1')
        assert close_group_stage(state, 't1') is state

    def test_group_results_frozen_after_close(self, closed_group_state):
        state = close_group_stage(closed_group_state, 't1')
        match = state.tournament('t1').group_matches[0]
        assert set_group_result(state, 't1', match.id, 0, 2) is state
        assert unset_group_result(state, 't1', match.id) is state

    def test_seed_override_only_in_group_stage(self, closed_group_state):
        state = close_group_stage(closed_group_state, 't1')
        assert set_seed_override(state, 't1', 1, 'd') is state

    def test_clear_seed_override(self, closed_group_state):
        state = set_seed_override(closed_group_state, 't1', 1, 'd')
        state = clear_seed_override(state, 't1')
        assert state.tournament('t1').seed_override is None
        assert clear_seed_override(state, 't1') is state


class TestPlayoffs:
    """Tests for playoff results and automatic finishing."""

    @pytest.fixture
    def playoff_state(self, closed_group_state):
        return close_group_stage(closed_group_state, 't1')

    def test_two_two_rejected(self, playoff_state):
        sf1 = playoff(playoff_state, 't1', SEMIFINAL1)
        assert set_playoff_result(playoff_state, 't1', sf1.id, 2, 2) is playoff_state

    def test_out_of_range_rejected(self, playoff_state):
        sf1 = playoff(playoff_state, 't1', SEMIFINAL1)
        assert set_playoff_result(playoff_state, 't1', sf1.id, 3, 0) is playoff_state

    def test_unresolved_final_cannot_be_scored(self, playoff_state):
        final = playoff(playoff_state, 't1', FINAL)
        assert set_playoff_result(playoff_state, 't1', final.id, 2, 0) is playoff_state

    def test_final_pairing_follows_semifinals(self, playoff_state):
        state = score(playoff_state, 't1', SEMIFINAL1, 0, 2)   # d
        state = score(state, 't1', SEMIFINAL2, 2, 1)           # b
        assert playoff(state, 't1', FINAL).pairing.pair == frozenset(('d', 'b'))
        assert state.tournament('t1').stage == PLAYOFFS_STAGE

    @pytest.mark.parametrize("final_score,winner", [((2, 0), 'a'), ((2, 1), 'a'), ((1, 2), 'b'), ((0, 2), 'b')])
    def test_final_finishes_tournament(self, playoff_state, final_score, winner):
        state = score(playoff_state, 't1', SEMIFINAL1, 2, 0)
        state = score(state, 't1', SEMIFINAL2, 2, 0)
        state = score(state, 't1', FINAL, *final_score)
        t = state.tournament('t1')

        assert t.stage == FINISHED_STAGE
        assert t.winner_id == winner

    def test_unfinished_final_has_no_winner(self, playoff_state):
        state = score(playoff_state, 't1', SEMIFINAL1, 2, 0)
        state = score(state, 't1', SEMIFINAL2, 2, 0)
        state = score(state, 't1', FINAL, 1, 1)
        assert state.tournament('t1').winner_id is None
        state = score(state, 't1', FINAL, 0, 0)
        assert state.tournament('t1').winner_id is None
        assert state.tournament('t1').stage == PLAYOFFS_STAGE

    def test_undoing_final_reverts_to_playoffs(self, closed_group_state):
        state = finish_tournament(closed_group_state, 't1')
        assert state.tournament('t1').stage == FINISHED_STAGE

        state = score(state, 't1', FINAL, 1, 0)
        t = state.tournament('t1')
        assert t.stage == PLAYOFFS_STAGE
        assert t.winner_id is None

    def test_correcting_semifinal_after_final_resets_it(self, closed_group_state):
        state = finish_tournament(closed_group_state, 't1')   # a beats b in the final
        state = score(state, 't1', SEMIFINAL2, 1, 2)          # c actually won
        t = state.tournament('t1')

        assert t.final.pairing.pair == frozenset(('a', 'c'))
        assert (t.final.wins_a, t.final.wins_b, t.final.done) == (0, 0, False)
        assert t.stage == PLAYOFFS_STAGE
        assert t.winner_id is None

    def test_unchanged_score_is_noop(self, playoff_state):
        state = score(playoff_state, 't1', SEMIFINAL1, 2, 0)
        assert score(state, 't1', SEMIFINAL1, 2, 0) is state


class TestTournamentListing:
    """Tests for the display order of tournaments."""

    def test_extract_order_number(self):
        assert extract_order_number('12° Draft') == 12
        assert extract_order_number(' 3 Sealed') == 3
        assert extract_order_number('Draft 3') is None

    def test_unfinished_first_then_number_then_name(self, four_players):
        state = four_players
        for tid, name in [('t1', '10° Draft'), ('t2', '2° Draft'), ('t3', 'Sealed'), ('t4', 'Anniversary'),
                          ('t5', '1° Draft')]:
            state = new_tournament(state, tournament_id=tid, name=name)
        state = play_group(state, 't5', alphabetical_scores)
        state = finish_tournament(state, 't5')

        ordered = [t.id for t in list_tournaments_for_display(state)]
        assert ordered == ['t2', 't1', 't4', 't3', 't5']
