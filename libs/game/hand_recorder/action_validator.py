from __future__ import annotations

from decimal import Decimal

from hand_recorder.hand_recorder_api import ActionRecord, ActionType, AvailableAction, GameState, Position, ValidationResult
from hand_recorder.hand_recorder_errors import HandRecorderErrors as HRErrors
from hand_recorder.legality import available_actions_for_state, find_action

from common.core.app_error import AppException


def _check_sizing(record: ActionRecord, option: AvailableAction, stack: Decimal) -> None:
    amount = record.amount
    details = {"position": record.position.value, "action": record.action.value}
    match record.action:
        case ActionType.FOLD | ActionType.CHECK:
            return
        case ActionType.CALL:
            if amount is not None and amount != option.call_amount:
                raise HRErrors.INVALID_CALL_AMOUNT.create(
                    message=f"{record.position} must call {option.call_amount}, not {amount}",
                    details={**details, "call_amount": str(option.call_amount), "amount": str(amount)},
                )
        case ActionType.BET | ActionType.RAISE:
            if amount is None:
                raise HRErrors.MISSING_AMOUNT.create(message=f"{record.action} requires an amount", details=details)
            if option.min_amount is not None and amount < option.min_amount:
                raise HRErrors.BET_TOO_SMALL.create(
                    message=f"{record.action} of {amount} is below the minimum of {option.min_amount}",
                    details={**details, "amount": str(amount), "min_amount": str(option.min_amount)},
                )
            if amount > stack:
                raise HRErrors.BET_TOO_LARGE.create(
                    message=f"{record.action} of {amount} exceeds the remaining stack of {stack}",
                    details={**details, "amount": str(amount), "stack": str(stack)},
                )
        case ActionType.ALL_IN:
            if amount is not None and amount != stack:
                raise HRErrors.INVALID_ALL_IN_AMOUNT.create(
                    message=f"All-in for {amount} does not match the remaining stack of {stack}",
                    details={**details, "amount": str(amount), "stack": str(stack)},
                )


def check_action(record: ActionRecord, state: GameState) -> None:
    """Raise the first reason ``record`` cannot be applied to ``state``.

    Checks run in order: the hand is still in progress, the record's seat is
    the one to act, the record is for the current street, the action is in the
    legal set, and any amount lies within the computed bounds.
    """
    if state.is_terminal:
        raise HRErrors.HAND_FINISHED.create(details={"status": state.status.value})
    player = state.get_player(record.position)
    if record.position is not state.current_position:
        current = state.current_position.value if state.current_position is not None else None
        raise HRErrors.OUT_OF_TURN.create(
            message=f"{record.position} cannot act now, {current} is to act",
            details={"position": record.position.value, "current_position": current},
        )
    if record.street is not state.street:
        raise HRErrors.STREET_MISMATCH.create(
            message=f"Action is for {record.street} but the hand is on the {state.street}",
            details={"street": state.street.value, "record_street": record.street.value},
        )

    options = available_actions_for_state(state, record.position)
    option = find_action(options, record.action)
    if option is None:
        raise HRErrors.ILLEGAL_ACTION.create(
            message=f"{record.position} cannot {record.action} here",
            details={"position": record.position.value, "action": record.action.value, "available": [o.action.value for o in options]},
        )
    _check_sizing(record, option, player.stack)


def validate_action(record: ActionRecord, state: GameState) -> ValidationResult:
    try:
        check_action(record, state)
    except AppException as e:
        return ValidationResult.reject(e)
    return ValidationResult.ok()


def is_action_allowed(record: ActionRecord, state: GameState) -> bool:
    return validate_action(record, state).valid


def get_selectable_positions(state: GameState) -> list[Position]:
    """Seats the position picker may offer: only the seat to act, none once the hand is over."""
    if state.is_terminal or state.current_position is None:
        return []
    return [state.current_position]


def can_select_position(position: Position, state: GameState) -> bool:
    return position in get_selectable_positions(state)
