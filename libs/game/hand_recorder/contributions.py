"""Contribution ledger.

Pure functions deriving chip contributions and pot sizes from the action log.
Blinds are never part of the log: they are passed in as the ``blinds`` mapping
of posted amounts and count as preflop contributions. Nothing is cached, so
calling any of these twice on the same log gives the same answer.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal

from hand_recorder.hand_recorder_api import ZERO, ActionRecord, ActionType, Position, Street

type Contributions = dict[Position, Decimal]


@dataclass(frozen=True)
class LedgerEntry:
    """One replayed action with the chips it moved."""

    index: int
    record: ActionRecord
    added: Decimal
    street_contribution: Decimal
    street_bet_before: Decimal
    street_bet_after: Decimal
    pot_after: Decimal


def chips_added(record: ActionRecord, current_bet: Decimal, own: Decimal, remaining: Decimal | None = None) -> Decimal:
    """Chips a single record adds to the pot.

    Sized records add their ``size.amount``. A call without a size adds what is
    owed, capped by ``remaining`` when the stack is known, and an unsized all-in
    adds whatever is left.
    """
    match record.action:
        case ActionType.FOLD | ActionType.CHECK:
            return ZERO
        case ActionType.CALL:
            if record.size is not None:
                return record.size.amount
            owed = max(ZERO, current_bet - own)
            return owed if remaining is None else min(owed, max(remaining, ZERO))
        case ActionType.BET | ActionType.RAISE:
            return record.size.amount if record.size is not None else ZERO
        case ActionType.ALL_IN:
            if record.size is not None:
                return record.size.amount
            return max(remaining, ZERO) if remaining is not None else ZERO


def iter_ledger(
    actions: Sequence[ActionRecord],
    blinds: Mapping[Position, Decimal],
    starting_stacks: Mapping[Position, Decimal] | None = None,
) -> Iterator[LedgerEntry]:
    street_contributions: dict[Street, Contributions] = {Street.PREFLOP: dict(blinds)}
    totals: Contributions = dict(blinds)
    pot = sum(blinds.values(), ZERO)

    for index, record in enumerate(actions):
        position = record.position
        contributions = street_contributions.setdefault(record.street, {})
        bet_before = max(contributions.values(), default=ZERO)
        own = contributions.get(position, ZERO)
        remaining = None
        if starting_stacks is not None and position in starting_stacks:
            remaining = starting_stacks[position] - totals.get(position, ZERO)

        added = chips_added(record, bet_before, own, remaining)
        contributions[position] = own + added
        totals[position] = totals.get(position, ZERO) + added
        pot += added

        yield LedgerEntry(
            index=index,
            record=record,
            added=added,
            street_contribution=contributions[position],
            street_bet_before=bet_before,
            street_bet_after=max(bet_before, contributions[position]),
            pot_after=pot,
        )


def contributions_this_street(
    actions: Sequence[ActionRecord],
    street: Street,
    blinds: Mapping[Position, Decimal],
    starting_stacks: Mapping[Position, Decimal] | None = None,
) -> Contributions:
    """Chips each seat has put in on ``street``. Preflop includes the posted blinds."""
    contributions: Contributions = dict(blinds) if street is Street.PREFLOP else {}
    for entry in iter_ledger(actions, blinds, starting_stacks):
        if entry.record.street is street:
            contributions[entry.record.position] = entry.street_contribution
    return contributions


def max_contribution_this_street(
    actions: Sequence[ActionRecord],
    street: Street,
    blinds: Mapping[Position, Decimal],
    starting_stacks: Mapping[Position, Decimal] | None = None,
) -> Decimal:
    return max(contributions_this_street(actions, street, blinds, starting_stacks).values(), default=ZERO)


def total_contributions(
    actions: Sequence[ActionRecord],
    blinds: Mapping[Position, Decimal],
    starting_stacks: Mapping[Position, Decimal] | None = None,
) -> Contributions:
    """Chips each seat has put in over the whole hand, blinds included."""
    totals: Contributions = dict(blinds)
    for entry in iter_ledger(actions, blinds, starting_stacks):
        position = entry.record.position
        totals[position] = totals.get(position, ZERO) + entry.added
    return totals


def current_pot(
    actions: Sequence[ActionRecord],
    blinds: Mapping[Position, Decimal],
    starting_stacks: Mapping[Position, Decimal] | None = None,
) -> Decimal:
    return sum(total_contributions(actions, blinds, starting_stacks).values(), ZERO)


def pot_for_street(
    actions: Sequence[ActionRecord],
    street: Street,
    blinds: Mapping[Position, Decimal],
    starting_stacks: Mapping[Position, Decimal] | None = None,
) -> Decimal:
    """Pot once the betting on ``street`` is over (or as it stands, for the street in progress)."""
    pot = sum(blinds.values(), ZERO)
    for entry in iter_ledger(actions, blinds, starting_stacks):
        if entry.record.street.index <= street.index:
            pot += entry.added
    return pot


def pot_before_street(
    actions: Sequence[ActionRecord],
    street: Street,
    blinds: Mapping[Position, Decimal],
    starting_stacks: Mapping[Position, Decimal] | None = None,
) -> Decimal:
    """Pot carried into ``street``: only the blinds before preflop, otherwise the previous street's closing pot."""
    if street is Street.PREFLOP:
        return sum(blinds.values(), ZERO)
    previous = list(Street)[street.index - 1]
    return pot_for_street(actions, previous, blinds, starting_stacks)


def pot_increase_this_street(
    actions: Sequence[ActionRecord],
    street: Street,
    blinds: Mapping[Position, Decimal],
    starting_stacks: Mapping[Position, Decimal] | None = None,
) -> Decimal:
    """Chips added on ``street`` by the log. Preflop blinds belong to the carried-in pot, not the increase."""
    return pot_for_street(actions, street, blinds, starting_stacks) - pot_before_street(actions, street, blinds, starting_stacks)


def pot_after_each_action(
    actions: Sequence[ActionRecord],
    blinds: Mapping[Position, Decimal],
    starting_stacks: Mapping[Position, Decimal] | None = None,
) -> list[Decimal]:
    """Running pot after every record, in log order."""
    return [entry.pot_after for entry in iter_ledger(actions, blinds, starting_stacks)]
