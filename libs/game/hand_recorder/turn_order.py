from __future__ import annotations

from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal

from hand_recorder.contributions import iter_ledger
from hand_recorder.hand_recorder_api import TABLE_ORDER, ZERO, ActionRecord, Position, Street
from hand_recorder.hand_recorder_errors import HandRecorderErrors as HRErrors


def _seats_after(seat: Position) -> list[Position]:
    """All six seats clockwise, starting with the one after ``seat`` and ending with ``seat``."""
    i = TABLE_ORDER.index(seat)
    return [*TABLE_ORDER[i + 1 :], *TABLE_ORDER[: i + 1]]


def preflop_order(positions: Collection[Position]) -> list[Position]:
    """Dealt seats in preflop order: first seat after the big blind, big blind last."""
    return [p for p in _seats_after(Position.BB) if p in positions]


def postflop_order(positions: Collection[Position], button: Position) -> list[Position]:
    """Dealt seats in postflop order: first seat after the button, button last."""
    return [p for p in _seats_after(button) if p in positions]


def street_order(street: Street, positions: Collection[Position], button: Position) -> list[Position]:
    match street:
        case Street.PREFLOP:
            return preflop_order(positions)
        case Street.FLOP | Street.TURN | Street.RIVER:
            return postflop_order(positions, button)


def default_button(positions: Collection[Position]) -> Position:
    """The button implied by the dealt seats.

    Heads-up the small blind has the button. Otherwise the button is the BTN
    seat, or the nearest dealt seat before the small blind when BTN is empty.
    """
    if len(positions) == 2:
        return Position.SB
    for seat in reversed(_seats_after(Position.SB)):
        if seat in positions and seat not in (Position.SB, Position.BB):
            return seat
    raise HRErrors.INVALID_POSITIONS.create(message="No seat can hold the button", details={"positions": [p.value for p in positions]})


def validate_button(positions: Collection[Position], button: Position) -> None:
    if button not in positions:
        raise HRErrors.INVALID_BUTTON.create(message=f"Button {button} is not dealt in", details={"button": button.value})
    if len(positions) == 2:
        if button is not Position.SB:
            raise HRErrors.INVALID_BUTTON.create(message="Heads-up the small blind has the button", details={"button": button.value})
    elif button in (Position.SB, Position.BB):
        raise HRErrors.INVALID_BUTTON.create(message=f"{button} cannot have the button with more than two seats", details={"button": button.value})


@dataclass(frozen=True)
class StreetBetting:
    """Betting on one street, replayed from the log.

    ``acted`` holds the seats that acted since the current bet was last
    increased. ``raise_closed`` holds the seats that acted since the last full
    raise: facing only an incomplete all-in raise, they may call but not re-raise.
    """

    street: Street
    contributions: dict[Position, Decimal] = field(default_factory=dict)
    current_bet: Decimal = ZERO
    raise_increment: Decimal = ZERO
    opened: bool = False
    acted: frozenset[Position] = frozenset()
    raise_closed: frozenset[Position] = frozenset()
    last_actor: Position | None = None

    def contribution(self, position: Position) -> Decimal:
        return self.contributions.get(position, ZERO)

    def to_call(self, position: Position) -> Decimal:
        return max(ZERO, self.current_bet - self.contribution(position))

    def may_raise(self, position: Position) -> bool:
        return position not in self.raise_closed

    def needs_to_act(self, position: Position) -> bool:
        return position not in self.acted or self.contribution(position) < self.current_bet


def summarize_street(
    street: Street,
    actions: Sequence[ActionRecord],
    blinds: Mapping[Position, Decimal],
    big_blind: Decimal,
    folded: Collection[Position] = frozenset(),
    starting_stacks: Mapping[Position, Decimal] | None = None,
) -> StreetBetting:
    preflop = street is Street.PREFLOP
    contributions: dict[Position, Decimal] = dict(blinds) if preflop else {}
    running_bet = max(blinds.values(), default=ZERO) if preflop else ZERO
    increment = big_blind
    opened = preflop
    acted: set[Position] = set()
    raise_closed: set[Position] = set()
    last_actor: Position | None = None

    for entry in iter_ledger(actions, blinds, starting_stacks):
        if entry.record.street is not street:
            continue
        position = entry.record.position
        contributions[position] = entry.street_contribution
        last_actor = position
        if entry.street_contribution > running_bet:
            raise_size = entry.street_contribution - running_bet
            if raise_size >= increment:
                increment = raise_size
                raise_closed = set()
            acted = set()
            running_bet = entry.street_contribution
            opened = True
        acted.add(position)
        raise_closed.add(position)

    return StreetBetting(
        street=street,
        contributions=contributions,
        current_bet=max((c for p, c in contributions.items() if p not in folded), default=ZERO),
        raise_increment=increment,
        opened=opened,
        acted=frozenset(acted),
        raise_closed=frozenset(raise_closed),
        last_actor=last_actor,
    )


def is_round_closed(can_act: Collection[Position], betting: StreetBetting) -> bool:
    """Whether no seat still owes a decision on this street.

    A lone seat with chips behind only has to act when it has not yet matched
    the bet; with nobody left to bet against there is nothing more to decide.
    """
    if not can_act:
        return True
    if len(can_act) == 1:
        (position,) = can_act
        return betting.contribution(position) >= betting.current_bet
    return not any(betting.needs_to_act(p) for p in can_act)


def next_to_act(order: Sequence[Position], can_act: Collection[Position], betting: StreetBetting) -> Position | None:
    """The first seat after the last actor that still owes a decision, or None once the round is closed."""
    if is_round_closed(can_act, betting):
        return None
    start = order.index(betting.last_actor) + 1 if betting.last_actor in order else 0
    for offset in range(len(order)):
        position = order[(start + offset) % len(order)]
        if position in can_act and betting.needs_to_act(position):
            return position
    return None


def first_to_act(
    street: Street, positions: Collection[Position], button: Position, can_act: Collection[Position], betting: StreetBetting
) -> Position | None:
    """First seat to act on a street before anyone has acted on it; preflop the blinds are already in."""
    return next_to_act(street_order(street, positions, button), can_act, betting)
