from __future__ import annotations

from collections.abc import Collection, Mapping, Sequence
from decimal import Decimal

from hand_recorder.contributions import total_contributions
from hand_recorder.hand_recorder_api import (
    TABLE_ORDER,
    ZERO,
    ActionRecord,
    HandResult,
    PlayerState,
    Position,
    PotWinner,
    SidePot,
    quantize_chips,
)
from hand_recorder.hand_recorder_errors import HandRecorderErrors as HRErrors


def calculate_side_pots(contributions: Mapping[Position, Decimal], folded: Collection[Position]) -> list[SidePot]:
    """Split total contributions into a main pot and side pots.

    Tiers are the distinct non-zero contributions of seats that have not folded.
    Every seat, folded or not, feeds each tier with the part of its contribution
    lying between the previous tier and this one. Only non-folded seats that
    reached a tier may win it, so eligibility shrinks from pot to pot. Folded
    chips above the highest live tier stay in the last pot.
    """
    live = {position: amount for position, amount in contributions.items() if position not in folded}
    total = sum(contributions.values(), ZERO)
    tiers = sorted({amount for amount in live.values() if amount > 0})

    if len(tiers) < 2:
        return [SidePot(amount=total, eligible_positions=[p for p in TABLE_ORDER if p in live])]

    pots: list[SidePot] = []
    previous = ZERO
    for tier in tiers:
        amount = sum((min(c, tier) - min(c, previous) for c in contributions.values()), ZERO)
        eligible = [p for p in TABLE_ORDER if p in live and live[p] >= tier]
        pots.append(SidePot(amount=amount, eligible_positions=eligible))
        previous = tier

    dead = total - sum((pot.amount for pot in pots), ZERO)
    if dead > 0:
        pots[-1].amount += dead
    return pots


def side_pots(actions: Sequence[ActionRecord], players: Sequence[PlayerState], blinds: Mapping[Position, Decimal]) -> list[SidePot]:
    """Pots for the hand as recorded so far."""
    starting_stacks = {p.position: p.initial_stack for p in players}
    contributions = total_contributions(actions, blinds, starting_stacks)
    folded = {p.position for p in players if not p.active}
    return calculate_side_pots(contributions, folded)


def settle_fold_out(pots: Sequence[SidePot], winner: Position) -> list[PotWinner]:
    """Every pot goes to the last seat standing."""
    return [PotWinner(pot_index=i, pot_amount=pot.amount, winners=[winner]) for i, pot in enumerate(pots) if pot.amount > 0]


def uncontested_pot_winners(pots: Sequence[SidePot]) -> list[PotWinner]:
    """Pots only one seat can win, such as an uncalled excess above the other stacks."""
    return [
        PotWinner(pot_index=i, pot_amount=pot.amount, winners=list(pot.eligible_positions))
        for i, pot in enumerate(pots)
        if len(pot.eligible_positions) == 1 and pot.amount > 0
    ]


def validate_pot_winners(pots: Sequence[SidePot], pot_winners: Sequence[PotWinner]) -> None:
    seen: set[int] = set()
    for pot_winner in pot_winners:
        index = pot_winner.pot_index
        if index >= len(pots):
            raise HRErrors.INVALID_POT_WINNERS.create(message=f"Pot {index} does not exist", details={"pot_index": index, "pots": len(pots)})
        if index in seen:
            raise HRErrors.INVALID_POT_WINNERS.create(message=f"Pot {index} has more than one winner entry", details={"pot_index": index})
        seen.add(index)

        pot = pots[index]
        if pot_winner.pot_amount != pot.amount:
            raise HRErrors.INVALID_POT_WINNERS.create(
                message=f"Pot {index} holds {pot.amount}, not {pot_winner.pot_amount}",
                details={"pot_index": index, "pot_amount": str(pot.amount)},
            )
        if not pot_winner.winners or len(set(pot_winner.winners)) != len(pot_winner.winners):
            raise HRErrors.INVALID_POT_WINNERS.create(message=f"Pot {index} needs distinct winners", details={"pot_index": index})
        ineligible = [p for p in pot_winner.winners if p not in pot.eligible_positions]
        if ineligible:
            raise HRErrors.INVALID_POT_WINNERS.create(
                message=f"{', '.join(ineligible)} cannot win pot {index}",
                details={"pot_index": index, "ineligible": [p.value for p in ineligible]},
            )


def calculate_winnings(pot_winners: Sequence[PotWinner]) -> dict[Position, Decimal]:
    """Chips won per seat. Split pots are divided equally, the odd chip going to the first winner in table order."""
    winnings: dict[Position, Decimal] = {}
    for pot_winner in pot_winners:
        winners = [p for p in TABLE_ORDER if p in pot_winner.winners]
        share = quantize_chips(pot_winner.pot_amount / len(winners))
        remainder = pot_winner.pot_amount - share * len(winners)
        for i, position in enumerate(winners):
            winnings[position] = winnings.get(position, ZERO) + share + (remainder if i == 0 else ZERO)
    return winnings


def hero_result(
    hero: Position,
    pots: Sequence[SidePot],
    pot_winners: Sequence[PotWinner],
    contributions: Mapping[Position, Decimal],
) -> HandResult | None:
    """Hero's net result, or None while some pot has no recorded winner."""
    if {pw.pot_index for pw in pot_winners} != {i for i, pot in enumerate(pots) if pot.amount > 0}:
        return None
    net = calculate_winnings(pot_winners).get(hero, ZERO) - contributions.get(hero, ZERO)
    return HandResult(won=net > 0, amount=net)
