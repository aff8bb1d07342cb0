"""Tests for action validation: every rejection leaves the state untouched."""

import pytest
from hand_recorder import ActionRecord, ActionType, HandRecorderErrors as HRErrors, Street
from hand_recorder.action_validator import can_select_position, get_selectable_positions, is_action_allowed, validate_action

from common.core.app_error import AppException, ErrorCategory

from .test_helpers import BB, BTN, CO, MP, SB, UTG, HandTest


class TestRejectedActions:
    """Illegal actions raise a categorized error and do not mutate the hand."""

    def test_out_of_turn(self) -> None:
        """Only the seat to act may act."""
        test = HandTest.create()
        error = test.process_action_error(CO, ActionType.FOLD, expected_error=HRErrors.OUT_OF_TURN)
        assert error.category is ErrorCategory.ILLEGAL_ACTION

    def test_seat_not_dealt_in(self) -> None:
        """Seats outside the hand are rejected."""
        test = HandTest.create(positions=[UTG, SB, BB])
        test.process_action_error(MP, ActionType.FOLD, expected_error=HRErrors.PLAYER_NOT_IN_HAND)

    def test_wrong_street(self) -> None:
        """A record for another street is rejected."""
        test = HandTest.create()
        test.process_action_error(UTG, ActionType.CHECK, street=Street.FLOP, expected_error=HRErrors.STREET_MISMATCH)

    def test_turn_is_checked_before_street(self) -> None:
        """A seat that is not to act is told so, whatever street its record names."""
        test = HandTest.create()
        test.process_action_error(CO, ActionType.CHECK, street=Street.FLOP, expected_error=HRErrors.OUT_OF_TURN)

    def test_check_facing_bet(self) -> None:
        """Checking is not offered when there is a bet to call."""
        test = HandTest.create()
        test.process_action_error(UTG, ActionType.CHECK, expected_error=HRErrors.ILLEGAL_ACTION)

    def test_bet_when_already_opened(self) -> None:
        """Preflop the blinds open the pot, so the action is a raise, not a bet."""
        test = HandTest.create()
        test.process_action_error(UTG, ActionType.BET, 3, expected_error=HRErrors.ILLEGAL_ACTION)

    def test_raise_below_minimum(self) -> None:
        """A raise smaller than the minimum is rejected as a sizing error."""
        test = HandTest.create()
        error = test.process_action_error(UTG, ActionType.RAISE, "1.5", expected_error=HRErrors.BET_TOO_SMALL)
        assert error.category is ErrorCategory.INVALID_SIZE

    def test_raise_above_stack(self) -> None:
        """A raise larger than the stack is rejected."""
        test = HandTest.create()
        test.process_action_error(UTG, ActionType.RAISE, 150, expected_error=HRErrors.BET_TOO_LARGE)

    def test_raise_without_amount(self) -> None:
        """Bets and raises must carry an amount."""
        test = HandTest.create()
        test.process_action_error(UTG, ActionType.RAISE, expected_error=HRErrors.MISSING_AMOUNT)

    def test_wrong_call_amount(self) -> None:
        """A sized call must match the amount owed."""
        test = HandTest.create()
        test.process_action_error(UTG, ActionType.CALL, 2, expected_error=HRErrors.INVALID_CALL_AMOUNT)

    def test_all_in_amount_must_match_stack(self) -> None:
        """An all-in must commit the whole stack."""
        test = HandTest.create()
        test.process_action_error(UTG, ActionType.ALL_IN, 50, expected_error=HRErrors.INVALID_ALL_IN_AMOUNT)

    def test_action_after_hand_finished(self) -> None:
        """Nothing can be recorded once the hand has been won."""
        test = HandTest.create(positions=[UTG, SB, BB])
        test.play((UTG, ActionType.FOLD), (SB, ActionType.FOLD))
        assert test.state.is_terminal
        test.process_action_error(BB, ActionType.CHECK, expected_error=HRErrors.HAND_FINISHED)

    def test_sized_fold_is_malformed(self) -> None:
        """Folds and checks cannot carry a size."""
        with pytest.raises(AppException) as exc_info:
            ActionRecord.of(UTG, ActionType.FOLD, Street.PREFLOP, 1)
        assert HRErrors.ILLEGAL_ACTION.is_(exc_info.value)


class TestValidationResult:
    """Non-raising validation for the input UI."""

    def test_valid_action(self) -> None:
        test = HandTest.create()
        result = validate_action(ActionRecord.of(UTG, ActionType.CALL, Street.PREFLOP), test.state)
        assert result.valid
        assert result.error is None

    def test_rejected_action_carries_details(self) -> None:
        """A rejection says why so the caller can re-offer the menu."""
        test = HandTest.create()
        result = validate_action(ActionRecord.of(BTN, ActionType.CALL, Street.PREFLOP), test.state)
        assert not result.valid
        assert result.reason
        assert result.error is not None
        assert result.error.code == HRErrors.OUT_OF_TURN.code
        assert result.error.category is ErrorCategory.ILLEGAL_ACTION
        assert not is_action_allowed(ActionRecord.of(BTN, ActionType.CALL, Street.PREFLOP), test.state)


class TestSelectablePositions:
    """Which seats the position picker offers."""

    def test_only_seat_to_act(self) -> None:
        test = HandTest.create()
        assert get_selectable_positions(test.state) == [UTG]
        assert can_select_position(UTG, test.state)
        assert not can_select_position(BB, test.state)

    def test_none_after_hand(self) -> None:
        test = HandTest.create(positions=[SB, BB])
        test.process_action(SB, ActionType.FOLD)
        assert get_selectable_positions(test.state) == []
        assert not can_select_position(BB, test.state)
