from __future__ import annotations

from collections.abc import Mapping, Sequence
from decimal import Decimal
from fractions import Fraction

from hand_recorder.hand_recorder_api import (
    ZERO,
    ActionRecord,
    ActionSize,
    ActionType,
    AvailableAction,
    BetSizeType,
    GameState,
    PlayerState,
    Position,
    Street,
    quantize_chips,
)
from hand_recorder.turn_order import StreetBetting, summarize_street

BET_MULTIPLES: tuple[Decimal, ...] = (Decimal(2), Decimal(3))
POT_FRACTIONS: tuple[Fraction, ...] = (Fraction(1, 3), Fraction(1, 2), Fraction(1))


def pot_relative_amount(fraction: Fraction | Decimal, pot: Decimal, stack: Decimal) -> Decimal:
    """Incremental amount for a bet of ``fraction`` of the pot, rounded down to a chip and capped by the stack."""
    numerator, denominator = fraction.as_integer_ratio()
    return min(quantize_chips(pot * numerator / denominator), stack)


def bet_relative_amount(multiple: Decimal, current_bet: Decimal, own: Decimal, stack: Decimal) -> Decimal:
    """Incremental amount for raising to ``multiple`` times the current bet, capped by the stack."""
    return min(max(ZERO, multiple * current_bet - own), stack)


def _preset_sizes(
    street: Street,
    betting: StreetBetting,
    own: Decimal,
    pot: Decimal,
    stack: Decimal,
    min_amount: Decimal,
) -> list[ActionSize]:
    sizes: list[ActionSize] = []
    if street is Street.PREFLOP or betting.current_bet > 0:
        for multiple in BET_MULTIPLES:
            amount = bet_relative_amount(multiple, betting.current_bet, own, stack)
            sizes.append(ActionSize(type=BetSizeType.BET_RELATIVE, value=multiple, amount=amount))
    else:
        for fraction in POT_FRACTIONS:
            amount = pot_relative_amount(fraction, pot, stack)
            sizes.append(ActionSize(type=BetSizeType.POT_RELATIVE, value=Decimal(fraction.numerator) / fraction.denominator, amount=amount))

    in_bounds: list[ActionSize] = []
    seen: set[Decimal] = set()
    for size in sizes:
        if min_amount <= size.amount <= stack and size.amount not in seen:
            seen.add(size.amount)
            in_bounds.append(size)
    return in_bounds


def _sizing_action(
    action: ActionType,
    street: Street,
    betting: StreetBetting,
    own: Decimal,
    pot: Decimal,
    stack: Decimal,
    min_amount: Decimal,
) -> AvailableAction:
    min_amount = min(min_amount, stack)
    return AvailableAction(
        action=action,
        min_amount=min_amount,
        max_amount=stack,
        min_total=own + min_amount,
        max_total=own + stack,
        sizes=_preset_sizes(street, betting, own, pot, stack, min_amount),
    )


def actions_for_player(player: PlayerState, street: Street, betting: StreetBetting, pot: Decimal, big_blind: Decimal) -> list[AvailableAction]:
    """Legal actions for ``player`` given the street's betting so far.

    Fold is always offered, including when checking is free. A seat that has
    already acted and only faces an incomplete all-in raise may call or fold
    but not raise again.
    """
    if not player.can_act:
        return []

    position = player.position
    stack = player.stack
    own = betting.contribution(position)
    to_call = betting.to_call(position)
    may_raise = betting.may_raise(position)

    available = [AvailableAction(action=ActionType.FOLD)]
    if to_call == 0:
        available.append(AvailableAction(action=ActionType.CHECK))
        if betting.opened:
            available.append(_sizing_action(ActionType.RAISE, street, betting, own, pot, stack, betting.raise_increment))
        else:
            available.append(_sizing_action(ActionType.BET, street, betting, own, pot, stack, big_blind))
    else:
        available.append(AvailableAction(action=ActionType.CALL, call_amount=min(to_call, stack)))
        if stack > to_call and may_raise:
            available.append(_sizing_action(ActionType.RAISE, street, betting, own, pot, stack, to_call + betting.raise_increment))

    if stack > 0 and (stack <= to_call or may_raise):
        available.append(AvailableAction(action=ActionType.ALL_IN, min_amount=stack, max_amount=stack, min_total=own + stack, max_total=own + stack))
    return available


def available_actions(
    position: Position,
    street: Street,
    actions: Sequence[ActionRecord],
    players: Sequence[PlayerState],
    pot: Decimal,
    *,
    blinds: Mapping[Position, Decimal],
    big_blind: Decimal,
) -> list[AvailableAction]:
    """Legal actions for the seat to act. Seats that folded or are all-in get none."""
    player = next((p for p in players if p.position == position), None)
    if player is None or not player.can_act:
        return []
    folded = {p.position for p in players if not p.active}
    starting_stacks = {p.position: p.initial_stack for p in players}
    betting = summarize_street(street, actions, blinds, big_blind, folded, starting_stacks)
    return actions_for_player(player, street, betting, pot, big_blind)


def available_actions_for_state(state: GameState, position: Position | None = None) -> list[AvailableAction]:
    """Legal actions in ``state`` for ``position``, by default the seat to act."""
    position = position if position is not None else state.current_position
    if position is None or state.is_terminal:
        return []
    return available_actions(
        position,
        state.street,
        state.actions,
        state.players,
        state.pot,
        blinds=state.posted_blinds,
        big_blind=state.blinds.bb,
    )


def find_action(options: Sequence[AvailableAction], action: ActionType) -> AvailableAction | None:
    return next((option for option in options if option.action is action), None)
