"""Tests for the hand state machine: turn order, street transitions and settlement."""

import pytest
from hand_recorder import ActionType, HandRecorderConfig, HandRecorderEnv, HandRecorderErrors as HRErrors, HandStatus, PotWinner, Street
from hand_recorder.hand_recorder_api import HandRecorderEventType, Position

from common.core.app_error import AppException, ErrorConfig

from .test_helpers import BB, BTN, CO, HEADS_UP, MP, SB, SIX_MAX, UTG, GameStateDiff, HandTest, PlayerStateDiff, chips


class TestStartHand:
    """Dealing a hand and posting blinds."""

    def test_blinds_posted(self) -> None:
        """Blinds come out of the stacks before anyone acts."""
        test = HandTest.create()
        state = test.state

        assert state.pot == chips(1.5)
        assert state.posted_blinds == {SB: chips(0.5), BB: chips(1)}
        assert test.player(SB).stack == chips(99.5)
        assert test.player(BB).stack == chips(99)
        assert test.player(SB).initial_stack == chips(100)
        assert state.last_bet == chips(1)
        assert state.current_position is UTG
        assert state.button is BTN
        assert state.street is Street.PREFLOP
        assert state.status is HandStatus.BETTING
        assert state.turn == 0

    def test_hand_started_event(self) -> None:
        test = HandTest.create(positions=[CO, SB, BB])
        (event,) = test.events.get_events()
        assert event.type is HandRecorderEventType.HAND_STARTED
        assert event.first_to_act is CO
        assert event.button is CO
        assert event.positions == [CO, SB, BB]

    def test_big_blind_covering_only_the_blind_is_all_in(self) -> None:
        """A one big blind stack is all-in after posting."""
        test = HandTest.create(positions=[UTG, SB, BB], stacks={BB: 1})
        assert test.player(BB).is_all_in
        assert test.player(BB).stack == 0

    @pytest.mark.parametrize(
        ("positions", "error"),
        [
            ([UTG], HRErrors.INVALID_POSITIONS),
            ([UTG, CO], HRErrors.INVALID_POSITIONS),
            ([SB, SB, BB], HRErrors.INVALID_POSITIONS),
            ([UTG, BB], HRErrors.INVALID_POSITIONS),
        ],
    )
    def test_invalid_positions(self, positions: list[Position], error: ErrorConfig) -> None:
        """Fewer than two seats, duplicates or a missing blind are rejected."""
        env = HandRecorderEnv.create()
        with pytest.raises(AppException) as exc_info:
            env.start_hand(positions)
        assert error.is_(exc_info.value)

    def test_invalid_button(self) -> None:
        """The button must be a dealt seat that is not a blind, except heads-up where SB has it."""
        env = HandRecorderEnv.create()
        for positions, button in (([UTG, SB, BB], SB), ([UTG, SB, BB], CO), (HEADS_UP, BB)):
            with pytest.raises(AppException) as exc_info:
                env.start_hand(positions, button)
            assert HRErrors.INVALID_BUTTON.is_(exc_info.value)

    def test_stack_out_of_range(self) -> None:
        env = HandRecorderEnv.create()
        with pytest.raises(AppException) as exc_info:
            env.start_hand(SIX_MAX, starting_stacks={CO: 500})
        assert HRErrors.STACK_OUT_OF_RANGE.is_(exc_info.value)

    def test_custom_button(self) -> None:
        """With BTN empty the button may sit in another seat, changing postflop order."""
        test = HandTest.create(positions=[UTG, MP, CO, SB, BB], button=MP)
        assert test.state.button is MP
        test.play(
            (UTG, ActionType.CALL),
            (MP, ActionType.CALL),
            (CO, ActionType.CALL),
            (SB, ActionType.CALL),
            (BB, ActionType.CHECK),
        )
        assert test.state.street is Street.FLOP
        assert test.state.current_position is CO


class TestTurnOrder:
    """Who acts next."""

    def test_preflop_order(self) -> None:
        """Preflop action starts after the big blind and goes clockwise."""
        test = HandTest.create()
        for position, expected_next in ((UTG, MP), (MP, CO), (CO, BTN), (BTN, SB), (SB, BB)):
            test.process_action(position, ActionType.CALL, expected_state_diff=None)
            assert test.state.current_position is expected_next

    def test_call_updates_stack_and_pot(self) -> None:
        test = HandTest.create()
        test.process_action(
            UTG,
            ActionType.CALL,
            expected_state_diff=GameStateDiff(
                players={UTG: PlayerStateDiff(stack=chips(99), last_action=ActionType.CALL)},
                pot=chips(2.5),
                current_position=MP,
            ),
        )

    def test_raise_updates_last_bet(self) -> None:
        test = HandTest.create()
        test.process_action(
            UTG,
            ActionType.RAISE,
            3,
            expected_state_diff=GameStateDiff(
                players={UTG: PlayerStateDiff(stack=chips(97), last_action=ActionType.RAISE)},
                pot=chips(4.5),
                last_bet=chips(3),
                last_raise_increment=chips(2),
                current_position=MP,
            ),
        )

    def test_folded_seats_are_skipped(self) -> None:
        test = HandTest.create()
        test.play((UTG, ActionType.FOLD), (MP, ActionType.RAISE, 3), (CO, ActionType.FOLD), (BTN, ActionType.CALL), (SB, ActionType.FOLD))
        test.process_action(BB, ActionType.CALL)

        assert test.state.street is Street.FLOP
        assert test.state.current_position is BB
        test.process_action(BB, ActionType.CHECK)
        assert test.state.current_position is MP

    def test_round_stays_open_until_bet_is_matched(self) -> None:
        """A raise sends the action back around to seats that already acted."""
        test = HandTest.create(positions=[UTG, SB, BB])
        test.play((UTG, ActionType.CALL), (SB, ActionType.CALL), (BB, ActionType.RAISE, 3))

        assert test.state.street is Street.PREFLOP
        assert test.state.current_position is UTG
        test.play((UTG, ActionType.CALL), (SB, ActionType.CALL))
        assert test.state.street is Street.FLOP

    def test_turn_counter_increases(self) -> None:
        """Every applied action moves the turn forward by one."""
        test = HandTest.create()
        turns = [test.state.turn]
        for position in (UTG, MP, CO, BTN, SB):
            test.process_action(position, ActionType.FOLD)
            turns.append(test.state.turn)
        assert turns == [0, 1, 2, 3, 4, 5]


class TestHeadsUp:
    """Two seats: the small blind has the button."""

    def test_small_blind_acts_first_preflop_and_last_postflop(self) -> None:
        test = HandTest.create(positions=HEADS_UP)
        assert test.state.button is SB
        assert test.state.current_position is SB

        test.play((SB, ActionType.CALL), (BB, ActionType.CHECK))
        assert test.state.street is Street.FLOP
        assert test.state.current_position is BB

        test.process_action(BB, ActionType.CHECK)
        assert test.state.current_position is SB

    def test_big_blind_option_after_limp(self) -> None:
        test = HandTest.create(positions=HEADS_UP)
        test.process_action(SB, ActionType.CALL)
        assert test.state.street is Street.PREFLOP
        assert test.state.current_position is BB
        assert ActionType.CHECK in test.available()


class TestStreets:
    """Street transitions and the board."""

    def _to_river(self) -> HandTest:
        test = HandTest.create(positions=[CO, SB, BB])
        test.play((CO, ActionType.RAISE, 3), (SB, ActionType.FOLD), (BB, ActionType.CALL))
        for _ in range(2):
            test.play((BB, ActionType.CHECK), (CO, ActionType.CHECK))
        return test

    def test_street_advance_resets_betting(self) -> None:
        test = HandTest.create(positions=[CO, SB, BB])
        test.play((CO, ActionType.RAISE, 3), (SB, ActionType.FOLD))
        test.process_action(
            BB,
            ActionType.CALL,
            expected_state_diff=GameStateDiff(
                players={BB: PlayerStateDiff(stack=chips(97), last_action=ActionType.CALL)},
                street=Street.FLOP,
                pot=chips(6.5),
                last_bet=chips(0),
                last_raise_increment=chips(1),
            ),
        )
        event_types = [event.type for event in test.events.get_events()]
        assert HandRecorderEventType.STREET_ADVANCED in event_types

    def test_river_close_goes_to_showdown(self) -> None:
        test = self._to_river()
        assert test.state.street is Street.RIVER
        test.play((BB, ActionType.BET, 5), (CO, ActionType.CALL))

        state = test.state
        assert state.status is HandStatus.SHOWDOWN
        assert state.current_position is None
        assert state.pot == chips(16.5)
        assert [p.amount for p in state.side_pots] == [chips(16.5)]
        assert state.side_pots[0].eligible_positions == [CO, BB]
        assert state.pot_winners == []

    def test_record_board_cards(self) -> None:
        test = HandTest.create(positions=[CO, SB, BB])
        test.play((CO, ActionType.CALL), (SB, ActionType.FOLD), (BB, ActionType.CHECK))

        state = test.env.set_board_cards(test.state, Street.FLOP, ["Ah", "Kd", "10c"])
        assert [str(c) for c in state.board] == ["Ah", "Kd", "10c"]
        assert test.state.board == []

        with pytest.raises(AppException) as exc_info:
            test.env.set_board_cards(state, Street.TURN, ["2s"])
        assert HRErrors.INVALID_CARDS.is_(exc_info.value)

    def test_board_validation(self) -> None:
        test = self._to_river()
        env = test.env
        state = env.set_board_cards(test.state, Street.FLOP, ["Ah", "Kd", "Tc"])
        state = env.set_board_cards(state, Street.TURN, ["2s"])
        state = env.set_board_cards(state, Street.RIVER, ["3s"])
        assert len(state.board) == 5

        for street, cards in ((Street.PREFLOP, ["Ah"]), (Street.FLOP, ["Ah", "Kd"]), (Street.FLOP, ["Ah", "Ah", "Kd"]), (Street.FLOP, ["Xh", "2c", "3c"])):
            with pytest.raises(AppException) as exc_info:
                env.set_board_cards(test.state, street, cards)
            assert HRErrors.INVALID_CARDS.is_(exc_info.value)


class TestSettlement:
    """Ending the hand."""

    def test_fold_out(self) -> None:
        """When everyone else folds the last seat wins every pot."""
        test = HandTest.create()
        test.play((UTG, ActionType.RAISE, 3), (MP, ActionType.FOLD), (CO, ActionType.FOLD), (BTN, ActionType.FOLD), (SB, ActionType.FOLD))
        test.process_action(BB, ActionType.FOLD)

        state = test.state
        assert state.status is HandStatus.FOLDED_OUT
        assert state.current_position is None
        assert state.pot_winners == [PotWinner(pot_index=0, pot_amount=chips(4.5), winners=[UTG])]
        event_types = [event.type for event in test.events.get_events()]
        assert event_types[-1] is HandRecorderEventType.HAND_SETTLED

    def test_all_in_runout(self) -> None:
        """Once nobody can bet, the board runs out to showdown."""
        test = HandTest.create(positions=HEADS_UP)
        test.play((SB, ActionType.ALL_IN), (BB, ActionType.CALL))

        state = test.state
        assert state.status is HandStatus.SHOWDOWN
        assert state.street is Street.RIVER
        assert state.pot == chips(200)
        assert test.player(SB).is_all_in and test.player(BB).is_all_in

    def test_runout_with_one_covering_stack(self) -> None:
        """A call that leaves chips behind still runs out when nobody else can act."""
        test = HandTest.create(positions=HEADS_UP, stacks={BB: 200})
        test.play((SB, ActionType.ALL_IN), (BB, ActionType.CALL))

        assert test.state.status is HandStatus.SHOWDOWN
        assert test.player(BB).stack == chips(100)
        assert not test.player(BB).is_all_in

    def test_set_pot_winners(self) -> None:
        test = HandTest.create(positions=[BTN, SB, BB], stacks={BTN: 20, SB: 50, BB: 100})
        test.play((BTN, ActionType.ALL_IN), (SB, ActionType.ALL_IN), (BB, ActionType.ALL_IN))

        state = test.env.set_pot_winners(test.state, {0: [BTN], 1: [SB, BB]})
        assert state.pot_winners == [
            PotWinner(pot_index=0, pot_amount=chips(60), winners=[BTN]),
            PotWinner(pot_index=1, pot_amount=chips(60), winners=[SB, BB]),
            PotWinner(pot_index=2, pot_amount=chips(50), winners=[BB]),
        ]

        with pytest.raises(AppException) as exc_info:
            test.env.set_pot_winners(test.state, {1: [BTN]})
        assert HRErrors.INVALID_POT_WINNERS.is_(exc_info.value)

    def test_pot_winners_only_at_showdown(self) -> None:
        test = HandTest.create()
        with pytest.raises(AppException) as exc_info:
            test.env.set_pot_winners(test.state, {0: [UTG]})
        assert HRErrors.INVALID_POT_WINNERS.is_(exc_info.value)


class TestReplay:
    """Rebuilding a hand from its log."""

    def test_replay_matches_live_state(self) -> None:
        """Deriving the state again from the log gives the same result."""
        test = HandTest.create(positions=[UTG, CO, SB, BB], stacks={UTG: 10})
        test.play((UTG, ActionType.ALL_IN), (CO, ActionType.RAISE, 25), (SB, ActionType.FOLD), (BB, ActionType.CALL), (BB, ActionType.CHECK))

        env = HandRecorderEnv.create(HandRecorderConfig())
        replayed = env.replay(test.state.positions, test.state.actions, test.state.button, test.state.starting_stacks)
        for field in ("street", "status", "current_position", "pot", "last_bet", "side_pots", "players", "turn"):
            assert getattr(replayed, field) == getattr(test.state, field), field
