"""Hand state machine for recording a live no-limit hand."""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping, Sequence
from decimal import Decimal
from typing import Any, override

from game_api import EventCollector, GameEnv
from hand_recorder.action_validator import check_action
from hand_recorder.contributions import current_pot, total_contributions
from hand_recorder.hand_recorder_api import (
    TABLE_ORDER,
    ZERO,
    ActionRecord,
    ActionRecordedEvent,
    ActionSize,
    ActionType,
    AvailableAction,
    BoardDealtEvent,
    Card,
    GameState,
    HandRecorderEvent,
    HandSettledEvent,
    HandStartedEvent,
    HandStatus,
    Position,
    PotUpdateEvent,
    PotWinner,
    PotWinnersRecordedEvent,
    SidePotsCreatedEvent,
    Street,
    StreetAdvancedEvent,
)
from hand_recorder.hand_recorder_config import HandRecorderConfig
from hand_recorder.hand_recorder_errors import HandRecorderErrors as HRErrors
from hand_recorder.legality import available_actions_for_state, find_action
from hand_recorder.side_pots import settle_fold_out, side_pots, uncontested_pot_winners, validate_pot_winners
from hand_recorder.turn_order import (
    StreetBetting,
    default_button,
    first_to_act,
    next_to_act,
    street_order,
    summarize_street,
    validate_button,
)

from common.ids import HandId, new_hand_id
from common.utils.utils import get_logger

logger = get_logger(__name__)


class HandRecorderEnv(GameEnv[GameState, HandRecorderEvent, ActionRecord, HandRecorderConfig, AvailableAction, Position]):
    """Environment owning the authoritative state of a recorded hand.

    States never change in place: ``start_hand`` builds one and every other
    operation returns a new one, so a rejected action leaves the caller's state
    exactly as it was.
    """

    def __init__(self, config: HandRecorderConfig) -> None:
        super().__init__(config)

    @override
    @classmethod
    def create(cls, config: HandRecorderConfig | None = None) -> HandRecorderEnv:
        return HandRecorderEnv(config if config is not None else HandRecorderConfig())

    def start_hand(
        self,
        positions: Iterable[Position],
        button: Position | None = None,
        starting_stacks: Mapping[Position, Decimal | int | str] | None = None,
        *,
        hand_id: HandId | None = None,
        event_collector: EventCollector[HandRecorderEvent] | None = None,
    ) -> GameState:
        """Deal a new hand: validate the seats, post the blinds and find the first seat to act."""
        event_collector = event_collector if event_collector is not None else EventCollector()
        seats = self._validate_positions(positions)
        button = button if button is not None else default_button(seats)
        validate_button(seats, button)
        stacks = self._resolve_stacks(seats, starting_stacks or {})

        blinds = self.config.blinds
        posted = {
            Position.SB: min(blinds.sb, stacks[Position.SB]),
            Position.BB: min(blinds.bb, stacks[Position.BB]),
        }
        players = []
        for position in seats:
            remaining = stacks[position] - posted.get(position, ZERO)
            players.append(
                {"position": position, "stack": remaining, "initial_stack": stacks[position], "is_all_in": remaining == 0}
            )

        state = GameState.model_validate(
            {
                "hand_id": hand_id if hand_id is not None else new_hand_id(),
                "button": button,
                "blinds": blinds,
                "players": players,
                "posted_blinds": posted,
            }
        )
        self._commit(state, event_collector)

        event_collector.add(
            HandStartedEvent(
                turn=state.turn,
                hand_id=state.hand_id,
                positions=seats,
                button=button,
                posted_blinds=posted,
                starting_stacks=state.starting_stacks,
                first_to_act=state.current_position,
            )
        )
        logger.info(
            f"Started hand {state.hand_id}",
            extra={"positions": seats, "button": button, "first_to_act": state.current_position},
        )
        return state

    @override
    def apply_action(
        self,
        state: GameState,
        action: ActionRecord,
        event_collector: EventCollector[HandRecorderEvent] | None = None,
    ) -> GameState:
        """Validate ``action`` and return the state after it.

        The record is normalized before it is appended so that every chip-moving
        entry of the log carries the exact amount it added.
        """
        event_collector = event_collector if event_collector is not None else EventCollector()
        check_action(action, state)

        new_state = state.model_copy(deep=True)
        record = self._normalize(action, new_state)
        player = new_state.get_player(record.position)
        stack_before = player.stack
        amount = record.amount if record.amount is not None else ZERO

        match record.action:
            case ActionType.FOLD:
                player.active = False
            case ActionType.CHECK:
                pass
            case ActionType.CALL | ActionType.BET | ActionType.RAISE | ActionType.ALL_IN:
                player.stack -= amount
                player.is_all_in = player.stack == 0
        player.last_action = record.action
        new_state.actions.append(record)

        event_collector.add(
            ActionRecordedEvent(
                turn=len(new_state.actions),
                position=record.position,
                action=record.action,
                street=record.street,
                amount=amount,
                stack_before=stack_before,
                stack_after=player.stack,
                went_all_in=True if player.is_all_in else None,
            )
        )
        self._commit(new_state, event_collector)
        if amount > 0:
            event_collector.add(
                PotUpdateEvent(
                    turn=new_state.turn,
                    pot_before=state.pot,
                    pot_after=new_state.pot,
                    amount_added=amount,
                    last_bet_before=state.last_bet,
                    last_bet_after=new_state.last_bet if new_state.street is state.street else ZERO,
                )
            )

        logger.debug(
            f"{record.position} {record.action} {amount}",
            extra={"hand_id": new_state.hand_id, "street": record.street, "pot": new_state.pot, "next": new_state.current_position},
        )
        return new_state

    @override
    def calc_available_actions(self, state: GameState, seat: Position | None = None) -> list[AvailableAction]:
        return available_actions_for_state(state, seat)

    def set_board_cards(
        self,
        state: GameState,
        street: Street,
        cards: Sequence[Card | str],
        event_collector: EventCollector[HandRecorderEvent] | None = None,
    ) -> GameState:
        """Record the community cards of ``street``. The flop replaces the whole board, turn and river extend it."""
        event_collector = event_collector if event_collector is not None else EventCollector()
        parsed = [card if isinstance(card, Card) else Card.of(card) for card in cards]
        details: dict[str, Any] = {"street": street.value, "cards": [str(c) for c in parsed]}

        if street is Street.PREFLOP:
            raise HRErrors.INVALID_CARDS.create(message="There are no community cards preflop", details=details)
        if state.status is HandStatus.BETTING and street.index > state.street.index:
            raise HRErrors.INVALID_CARDS.create(message=f"The hand has not reached the {street} yet", details=details)

        board_before = list(Street)[street.index - 1].board_size
        if len(parsed) != street.board_size - board_before:
            raise HRErrors.INVALID_CARDS.create(
                message=f"The {street} takes {street.board_size - board_before} card(s), got {len(parsed)}",
                details=details,
            )
        if street is Street.FLOP:
            board = parsed
        elif len(state.board) == board_before:
            board = [*state.board, *parsed]
        else:
            raise HRErrors.INVALID_CARDS.create(
                message=f"The {street} needs exactly {board_before} cards on the board first",
                details={**details, "board": [str(c) for c in state.board]},
            )
        if len(set(board)) != len(board):
            raise HRErrors.INVALID_CARDS.create(message="Board cards must be distinct", details=details)

        new_state = state.model_copy(deep=True)
        new_state.board = board
        event_collector.add(BoardDealtEvent(turn=new_state.turn, street=street, cards=parsed, total_board_cards=len(board)))
        return new_state

    def set_pot_winners(
        self,
        state: GameState,
        winners: Mapping[int, Collection[Position]],
        event_collector: EventCollector[HandRecorderEvent] | None = None,
    ) -> GameState:
        """Record who won each contested pot at showdown. Pots already decided keep their winners unless overridden."""
        event_collector = event_collector if event_collector is not None else EventCollector()
        if state.status is not HandStatus.SHOWDOWN:
            raise HRErrors.INVALID_POT_WINNERS.create(
                message="Pot winners are only chosen at showdown",
                details={"status": state.status.value},
            )

        by_index = {pw.pot_index: pw for pw in state.pot_winners}
        for index, positions in winners.items():
            if not 0 <= index < len(state.side_pots):
                raise HRErrors.INVALID_POT_WINNERS.create(message=f"Pot {index} does not exist", details={"pot_index": index})
            ordered = [p for p in TABLE_ORDER if p in positions]
            by_index[index] = PotWinner(pot_index=index, pot_amount=state.side_pots[index].amount, winners=ordered)
        pot_winners = [by_index[i] for i in sorted(by_index)]
        validate_pot_winners(state.side_pots, pot_winners)

        new_state = state.model_copy(deep=True)
        new_state.pot_winners = pot_winners
        event_collector.add(PotWinnersRecordedEvent(turn=new_state.turn, pot_winners=pot_winners))
        return new_state

    def replay(
        self,
        positions: Iterable[Position],
        actions: Iterable[ActionRecord],
        button: Position | None = None,
        starting_stacks: Mapping[Position, Decimal | int | str] | None = None,
        event_collector: EventCollector[HandRecorderEvent] | None = None,
    ) -> GameState:
        """Rebuild a state by applying a recorded log to a fresh hand."""
        state = self.start_hand(positions, button, starting_stacks, event_collector=event_collector)
        for record in actions:
            state = self.apply_action(state, record, event_collector)
        return state

    def _validate_positions(self, positions: Iterable[Position]) -> list[Position]:
        requested = list(positions)
        seats = [p for p in TABLE_ORDER if p in requested]
        details = {"positions": [str(p) for p in requested]}
        if len(seats) != len(requested):
            raise HRErrors.INVALID_POSITIONS.create(message="Positions must be distinct seats", details=details)
        if not self.config.min_players <= len(seats) <= self.config.max_players:
            raise HRErrors.INVALID_POSITIONS.create(
                message=f"A hand needs between {self.config.min_players} and {self.config.max_players} seats",
                details=details,
            )
        if Position.SB not in seats or Position.BB not in seats:
            raise HRErrors.INVALID_POSITIONS.create(message="Both blinds must be dealt in", details=details)
        return seats

    def _resolve_stacks(self, seats: Sequence[Position], overrides: Mapping[Position, Decimal | int | str]) -> dict[Position, Decimal]:
        unknown = [p for p in overrides if p not in seats]
        if unknown:
            raise HRErrors.INVALID_POSITIONS.create(
                message="Starting stacks given for seats that are not dealt in",
                details={"positions": [str(p) for p in unknown]},
            )
        stacks: dict[Position, Decimal] = {}
        for position in seats:
            stack = Decimal(overrides[position]) if position in overrides else self.config.default_stack
            if not self.config.is_stack_allowed(stack):
                raise HRErrors.STACK_OUT_OF_RANGE.create(
                    message=f"Stack {stack} for {position} is outside {self.config.min_stack}-{self.config.max_stack}",
                    details={"position": position.value, "stack": str(stack)},
                )
            stacks[position] = stack
        return stacks

    def _normalize(self, record: ActionRecord, state: GameState) -> ActionRecord:
        player = state.get_player(record.position)
        match record.action:
            case ActionType.CALL if record.size is None:
                option = find_action(available_actions_for_state(state, record.position), ActionType.CALL)
                call_amount = option.call_amount if option is not None and option.call_amount is not None else ZERO
                return record.model_copy(update={"size": ActionSize.absolute(call_amount)})
            case ActionType.ALL_IN if record.size is None:
                return record.model_copy(update={"size": ActionSize.absolute(player.stack)})
            case _:
                return record

    def _betting(self, state: GameState) -> StreetBetting:
        return summarize_street(
            state.street,
            state.actions,
            state.posted_blinds,
            state.blinds.bb,
            state.folded_positions,
            state.starting_stacks,
        )

    def _commit(self, state: GameState, event_collector: EventCollector[HandRecorderEvent]) -> None:
        """Recompute every derived field from the log, move the turn on and check the invariants."""
        state.turn = len(state.actions)
        state.pot = current_pot(state.actions, state.posted_blinds, state.starting_stacks)

        if sum(1 for p in state.players if p.active) <= 1:
            self._settle(state, HandStatus.FOLDED_OUT, event_collector)
        else:
            self._advance(state, event_collector)
            if not state.is_terminal:
                pots_before = len(state.side_pots)
                state.side_pots = side_pots(state.actions, state.players, state.posted_blinds) if any(p.is_all_in for p in state.players) else []
                if len(state.side_pots) > max(pots_before, 1):
                    event_collector.add(SidePotsCreatedEvent(turn=state.turn, side_pots=state.side_pots))

        self._check_invariants(state)

    def _advance(self, state: GameState, event_collector: EventCollector[HandRecorderEvent]) -> None:
        betting = self._betting(state)
        can_act = [p.position for p in state.players if p.can_act]
        state.last_bet = betting.current_bet
        state.last_raise_increment = betting.raise_increment

        next_position = next_to_act(street_order(state.street, state.positions, state.button), can_act, betting)
        if next_position is not None:
            state.current_position = next_position
            return

        from_street = state.street
        next_street = from_street.next()
        if next_street is None:
            self._settle(state, HandStatus.SHOWDOWN, event_collector)
            return

        state.last_bet = ZERO
        state.last_raise_increment = state.blinds.bb
        if len(can_act) <= 1:
            # Nobody left to bet against: run the board out
            state.street = Street.RIVER
            state.current_position = None
            event_collector.add(StreetAdvancedEvent(turn=state.turn, from_street=from_street, to_street=state.street))
            self._settle(state, HandStatus.SHOWDOWN, event_collector)
            return

        state.street = next_street
        state.current_position = first_to_act(state.street, state.positions, state.button, can_act, self._betting(state))
        event_collector.add(
            StreetAdvancedEvent(turn=state.turn, from_street=from_street, to_street=next_street, next_position=state.current_position)
        )

    def _settle(self, state: GameState, status: HandStatus, event_collector: EventCollector[HandRecorderEvent]) -> None:
        state.status = status
        state.current_position = None
        pots = side_pots(state.actions, state.players, state.posted_blinds)
        state.side_pots = pots

        match status:
            case HandStatus.FOLDED_OUT:
                winner = next(p.position for p in state.players if p.active)
                state.pot_winners = settle_fold_out(pots, winner)
            case HandStatus.SHOWDOWN:
                state.pot_winners = uncontested_pot_winners(pots)
            case HandStatus.BETTING:
                raise HRErrors.INVARIANT_VIOLATION.create(message="Cannot settle a hand that is still betting")

        if len(pots) > 1:
            event_collector.add(SidePotsCreatedEvent(turn=state.turn, side_pots=pots))
        event_collector.add(HandSettledEvent(turn=state.turn, status=status, side_pots=pots, pot_winners=state.pot_winners))
        logger.info(
            f"Hand {state.hand_id} settled: {status}",
            extra={"pot": state.pot, "pots": len(pots), "street": state.street},
        )

    def _check_invariants(self, state: GameState) -> None:
        blinds_total = sum(state.posted_blinds.values(), ZERO)
        logged = sum((r.amount for r in state.actions if r.amount is not None), ZERO)
        if state.pot != logged + blinds_total:
            self._violation(state, "Pot does not match the action log", pot=str(state.pot), logged=str(logged + blinds_total))

        contributions = total_contributions(state.actions, state.posted_blinds, state.starting_stacks)
        for player in state.players:
            position = player.position.value
            if player.stack < 0:
                self._violation(state, f"{position} has a negative stack", stack=str(player.stack))
            if player.is_all_in and player.stack != 0:
                self._violation(state, f"{position} is all-in with chips behind", stack=str(player.stack))
            if player.stack + contributions.get(player.position, ZERO) != player.initial_stack:
                self._violation(
                    state,
                    f"{position} stack and contributions do not add up to the starting stack",
                    stack=str(player.stack),
                    contributed=str(contributions.get(player.position, ZERO)),
                )

        if state.side_pots:
            if sum((pot.amount for pot in state.side_pots), ZERO) != state.pot:
                self._violation(state, "Side pots do not add up to the pot")
            for outer, inner in zip(state.side_pots, state.side_pots[1:], strict=False):
                if not set(inner.eligible_positions) <= set(outer.eligible_positions):
                    self._violation(state, "Side pot eligibility is not nested")

        if state.status is HandStatus.BETTING:
            if state.current_position is None:
                self._violation(state, "Hand is betting but nobody is to act")
            elif not state.get_player(state.current_position).can_act:
                self._violation(state, f"{state.current_position} is to act but cannot act")
        elif state.current_position is not None:
            self._violation(state, "Finished hand still has a seat to act")

    def _violation(self, state: GameState, message: str, **details: Any) -> None:
        logger.error(message, extra={"hand_id": state.hand_id, "actions": len(state.actions), **details})
        raise HRErrors.INVARIANT_VIOLATION.create(message=message, details={"hand_id": state.hand_id, **details})
