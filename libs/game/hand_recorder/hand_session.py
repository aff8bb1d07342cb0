"""Per-hand session handle and hand persistence."""

from __future__ import annotations

import threading
from collections.abc import Collection, Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from decimal import Decimal
from typing import Protocol

from game_api import EventCollector
from hand_recorder import action_validator, contributions, side_pots as settlement
from hand_recorder.hand_recorder_api import (
    TABLE_ORDER,
    ActionRecord,
    AvailableAction,
    Card,
    GameState,
    Hand,
    HandRecorderEvent,
    HandStatus,
    Position,
    ShowdownHand,
    SidePot,
    Street,
    ValidationResult,
)
from hand_recorder.hand_recorder_env import HandRecorderEnv
from hand_recorder.hand_recorder_errors import HandRecorderErrors as HRErrors
from pydantic import ValidationError

from common.core.app_error import AppException, ErrorCategory, Errors
from common.ids import HandId
from common.utils.serialization import SerializationError, decode_json, encode_json
from common.utils.utils import get_logger, get_now_ms

logger = get_logger(__name__)

_REJECTED_CATEGORIES = frozenset({ErrorCategory.ILLEGAL_ACTION, ErrorCategory.INVALID_SIZE})


class HandStore(Protocol):
    """Storage for finished hands."""

    def save_hand(self, hand: Hand) -> None: ...

    def load_hands(self) -> list[Hand]: ...


class InMemoryHandStore:
    """Keeps finished hands as encoded JSON, the form they would be written to disk in."""

    def __init__(self) -> None:
        self._hands: dict[HandId, bytes] = {}

    def save_hand(self, hand: Hand) -> None:
        self._hands[hand.id] = encode_json(hand)

    def load_hands(self) -> list[Hand]:
        hands = []
        for hand_id, raw in self._hands.items():
            try:
                hands.append(Hand.model_validate(decode_json(raw)))
            except (SerializationError, ValidationError) as e:
                raise Errors.Generic.INVALID_INPUT.create(message=f"Stored hand {hand_id} is corrupt", details={"hand_id": hand_id}, cause=e)
        return hands


class HandSession:
    """The single writer of one recorded hand.

    Mutating calls are serialized by a non-blocking lock: a call that overlaps
    another is rejected with a retryable ``CONCURRENT_UPDATE`` instead of
    queueing, so a double tap can never record an action twice. Readers work on
    the immutable snapshot returned by ``state``.
    """

    def __init__(self, env: HandRecorderEnv, store: HandStore | None = None) -> None:
        self.env = env
        self.store = store if store is not None else InMemoryHandStore()
        self._state: GameState | None = None
        self._events: EventCollector[HandRecorderEvent] = EventCollector()
        self._showdown_hands: list[ShowdownHand] = []
        self._lock = threading.Lock()
        self._closed = False

    @classmethod
    def start(
        cls,
        env: HandRecorderEnv,
        positions: Iterable[Position],
        button: Position | None = None,
        starting_stacks: Mapping[Position, Decimal | int | str] | None = None,
        *,
        store: HandStore | None = None,
    ) -> HandSession:
        session = cls(env, store)
        session.start_new_hand(positions, button, starting_stacks)
        return session

    @property
    def state(self) -> GameState:
        if self._closed:
            raise HRErrors.SESSION_CLOSED.create()
        if self._state is None:
            raise HRErrors.SESSION_CLOSED.create(message="No hand is in progress")
        return self._state

    @property
    def events(self) -> list[HandRecorderEvent]:
        return self._events.get_events()

    @property
    def closed(self) -> bool:
        return self._closed

    @contextmanager
    def _writing(self) -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            raise HRErrors.CONCURRENT_UPDATE.create()
        try:
            if self._closed:
                raise HRErrors.SESSION_CLOSED.create()
            yield
        finally:
            self._lock.release()

    def start_new_hand(
        self,
        positions: Iterable[Position],
        button: Position | None = None,
        starting_stacks: Mapping[Position, Decimal | int | str] | None = None,
    ) -> GameState:
        with self._writing():
            events: EventCollector[HandRecorderEvent] = EventCollector()
            state = self.env.start_hand(positions, button, starting_stacks, event_collector=events)
            self._state = state
            self._events = events
            self._showdown_hands = []
            return state

    def apply_action(self, record: ActionRecord) -> GameState:
        """Apply ``record`` or raise why it cannot be applied. The state is untouched on failure."""
        with self._writing():
            self._state = self.env.apply_action(self.state, record, self._events)
            return self._state

    def add_action(self, record: ActionRecord) -> GameState:
        """Apply ``record`` if it is legal and return the resulting state.

        An illegal or mis-sized action is logged and ignored. Invariant
        violations and session errors still raise.
        """
        with self._writing():
            state = self.state
            try:
                self._state = self.env.apply_action(state, record, self._events)
            except AppException as e:
                if e.category not in _REJECTED_CATEGORIES:
                    raise
                logger.warning(
                    f"Rejected {record.action} by {record.position}: {e.details.message}",
                    extra={"hand_id": state.hand_id, "code": e.details.code, "street": state.street},
                )
            return self._state

    def validate(self, record: ActionRecord) -> ValidationResult:
        return action_validator.validate_action(record, self.state)

    def available_actions(self, position: Position | None = None) -> list[AvailableAction]:
        return self.env.calc_available_actions(self.state, position)

    def selectable_positions(self) -> list[Position]:
        return action_validator.get_selectable_positions(self.state)

    def can_select_position(self, position: Position) -> bool:
        return action_validator.can_select_position(position, self.state)

    def current_pot(self) -> Decimal:
        state = self.state
        return contributions.current_pot(state.actions, state.posted_blinds, state.starting_stacks)

    def total_contributions(self) -> dict[Position, Decimal]:
        state = self.state
        return contributions.total_contributions(state.actions, state.posted_blinds, state.starting_stacks)

    def side_pots(self) -> list[SidePot]:
        state = self.state
        return settlement.side_pots(state.actions, state.players, state.posted_blinds)

    def pot_before_street(self, street: Street | None = None) -> Decimal:
        state = self.state
        return contributions.pot_before_street(state.actions, street or state.street, state.posted_blinds, state.starting_stacks)

    def pot_increase_this_street(self, street: Street | None = None) -> Decimal:
        state = self.state
        return contributions.pot_increase_this_street(state.actions, street or state.street, state.posted_blinds, state.starting_stacks)

    def set_board_cards(self, street: Street, cards: Sequence[Card | str]) -> GameState:
        with self._writing():
            self._state = self.env.set_board_cards(self.state, street, cards, self._events)
            return self._state

    def set_pot_winners(self, winners: Mapping[int, Collection[Position]]) -> GameState:
        with self._writing():
            self._state = self.env.set_pot_winners(self.state, winners, self._events)
            return self._state

    def set_showdown_hands(self, hands: Sequence[ShowdownHand]) -> None:
        """Record the hands shown or mucked by the seats that reached showdown."""
        with self._writing():
            state = self.state
            if state.status is not HandStatus.SHOWDOWN:
                raise HRErrors.INVALID_CARDS.create(message="Hands are only shown at showdown", details={"status": state.status.value})
            seen_positions: set[Position] = set()
            seen_cards: set[Card] = set(state.board)
            for shown in hands:
                player = state.get_player(shown.position)
                if not player.active or shown.position in seen_positions:
                    raise HRErrors.INVALID_CARDS.create(
                        message=f"{shown.position} cannot show a hand",
                        details={"position": shown.position.value},
                    )
                seen_positions.add(shown.position)
                if shown.hand != "muck":
                    self._claim_cards(shown.hand, seen_cards)
            self._showdown_hands = list(hands)

    def finalize(
        self,
        hero_position: Position | None = None,
        hero_hand: Sequence[Card | str] | None = None,
        *,
        notes: str | None = None,
        favorite: bool = False,
    ) -> Hand:
        """Build the ``Hand`` record, save it and close the session.

        Hero's result is only filled in once every pot has a recorded winner.
        """
        with self._writing():
            state = self.state
            if not state.is_terminal:
                raise HRErrors.SESSION_CLOSED.create(
                    message="Cannot finalize a hand that is still betting",
                    details={"hand_id": state.hand_id, "current_position": state.current_position},
                )

            cards = [c if isinstance(c, Card) else Card.of(c) for c in hero_hand] if hero_hand is not None else None
            if cards is not None:
                if len(cards) != 2:
                    raise HRErrors.INVALID_CARDS.create(message="Hero holds exactly two cards")
                self._claim_cards(cards, set(state.board))
            if hero_position is not None:
                state.get_player(hero_position)

            totals = contributions.total_contributions(state.actions, state.posted_blinds, state.starting_stacks)
            winners = {p for pw in state.pot_winners for p in pw.winners}
            hand = Hand(
                id=state.hand_id,
                date=get_now_ms(),
                positions=state.positions,
                button=state.button,
                hero_position=hero_position,
                hero_hand=cards,
                actions=state.actions,
                board=state.board,
                side_pots=state.side_pots,
                pot_winners=state.pot_winners,
                winner_positions=[p for p in TABLE_ORDER if p in winners],
                showdown_hands=self._showdown_hands,
                result=settlement.hero_result(hero_position, state.side_pots, state.pot_winners, totals) if hero_position is not None else None,
                initial_stacks={p: s for p, s in state.starting_stacks.items() if s != self.env.config.default_stack},
                notes=notes,
                favorite=favorite,
            )
            self.store.save_hand(hand)
            logger.info(f"Saved hand {hand.id}", extra={"status": state.status, "winners": hand.winner_positions})

            self._closed = True
            self._state = None
            return hand

    def reset(self) -> None:
        """Discard the hand in progress without saving it."""
        with self._writing():
            if self._state is not None:
                logger.info(f"Discarded hand {self._state.hand_id}", extra={"actions": len(self._state.actions)})
            self._state = None
            self._events = EventCollector()
            self._showdown_hands = []

    @staticmethod
    def _claim_cards(cards: Sequence[Card], seen: set[Card]) -> None:
        for card in cards:
            if card in seen:
                raise HRErrors.INVALID_CARDS.create(message=f"{card} is already in use", details={"card": str(card)})
            seen.add(card)
