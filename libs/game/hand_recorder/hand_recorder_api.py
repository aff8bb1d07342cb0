from __future__ import annotations

from decimal import ROUND_DOWN, Decimal
from enum import StrEnum
from typing import Annotated, Any, Literal

from game_api import BaseGameEvent, BaseGameState, BasePlayerAction, BasePossibleAction, GameType
from hand_recorder.hand_recorder_errors import HandRecorderErrors as HRErrors
from pydantic import Field, model_serializer, model_validator

from common.core.app_error import AppException, ErrorDetails
from common.ids import HandId
from common.utils.json_model import ImmutableJsonModel, JsonModel
from common.utils.utils import get_now_ms

ZERO = Decimal(0)
CHIP_QUANTUM = Decimal("0.01")


def quantize_chips(amount: Decimal) -> Decimal:
    """Round an amount down to the smallest recorded chip fraction."""
    return amount.quantize(CHIP_QUANTUM, rounding=ROUND_DOWN)


class Position(StrEnum):
    """The six fixed seats, declared in clockwise table order."""

    UTG = "UTG"
    MP = "MP"
    CO = "CO"
    BTN = "BTN"
    SB = "SB"
    BB = "BB"


TABLE_ORDER: tuple[Position, ...] = tuple(Position)


class Street(StrEnum):
    """Betting rounds of a hand."""

    PREFLOP = "preflop"
    FLOP = "flop"
    TURN = "turn"
    RIVER = "river"

    def next(self) -> Street | None:
        match self:
            case Street.PREFLOP:
                return Street.FLOP
            case Street.FLOP:
                return Street.TURN
            case Street.TURN:
                return Street.RIVER
            case Street.RIVER:
                return None

    @property
    def index(self) -> int:
        return _STREET_INDEX[self]

    @property
    def board_size(self) -> int:
        """Number of community cards visible once this street is dealt."""
        match self:
            case Street.PREFLOP:
                return 0
            case Street.FLOP:
                return 3
            case Street.TURN:
                return 4
            case Street.RIVER:
                return 5


_STREET_INDEX: dict[Street, int] = {street: i for i, street in enumerate(Street)}


class HandStatus(StrEnum):
    BETTING = "betting"
    SHOWDOWN = "showdown"
    FOLDED_OUT = "folded_out"

    @property
    def is_terminal(self) -> bool:
        return self is not HandStatus.BETTING


class ActionType(StrEnum):
    """Possible recorded actions."""

    FOLD = "fold"
    CHECK = "check"
    CALL = "call"
    BET = "bet"
    RAISE = "raise"
    ALL_IN = "all-in"

    @property
    def moves_chips(self) -> bool:
        match self:
            case ActionType.CALL | ActionType.BET | ActionType.RAISE | ActionType.ALL_IN:
                return True
            case ActionType.FOLD | ActionType.CHECK:
                return False


class BetSizeType(StrEnum):
    """How a preset size was expressed when it was chosen."""

    BET_RELATIVE = "bet-relative"
    POT_RELATIVE = "pot-relative"
    ABSOLUTE = "absolute"


class CardRank(StrEnum):
    """Card ranks as string enums."""

    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    SIX = "6"
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    TEN = "10"
    JACK = "J"
    QUEEN = "Q"
    KING = "K"
    ACE = "A"

    @staticmethod
    def of(rank: str) -> CardRank:
        normalized = rank.strip().upper()
        if normalized == "T":
            return CardRank.TEN
        try:
            return CardRank(normalized)
        except ValueError:
            raise HRErrors.INVALID_CARDS.create(message=f"Invalid rank: {rank}", details={"rank": rank}) from None


class CardSuit(StrEnum):
    """Card suits as string enums."""

    HEARTS = "hearts"
    DIAMONDS = "diamonds"
    CLUBS = "clubs"
    SPADES = "spades"

    def as_char(self) -> str:
        return _SUIT_TO_CHAR[self]


_SUIT_TO_CHAR: dict[CardSuit, str] = {
    CardSuit.HEARTS: "h",
    CardSuit.DIAMONDS: "d",
    CardSuit.CLUBS: "c",
    CardSuit.SPADES: "s",
}
_CHAR_TO_SUIT: dict[str, CardSuit] = {char: suit for suit, char in _SUIT_TO_CHAR.items()}


class Card(ImmutableJsonModel):
    """A playing card, serialized in compact form like 'Ah' or '10c'."""

    rank: CardRank = Field(..., description="Card rank (2-10, J, Q, K, A)")
    suit: CardSuit = Field(..., description="Card suit (hearts, diamonds, clubs, spades)")

    @model_serializer
    def serialize_model(self) -> str:
        return self.to_compact_string()

    @model_validator(mode="before")
    @classmethod
    def validate_model(cls, data: Any) -> Any:
        """Accept the compact string form as well as a rank/suit mapping."""
        if isinstance(data, str):
            card = cls.of(data)
            return {"rank": card.rank, "suit": card.suit}
        return data

    @staticmethod
    def of(card_str: str) -> Card:
        """Create a Card from a compact string such as 'Ah', 'Kd', '10c' or 'Tc'."""
        card_str = card_str.strip()
        if len(card_str) < 2:
            raise HRErrors.INVALID_CARDS.create(message=f"Invalid card string: {card_str}", details={"card": card_str})

        suit_char = card_str[-1].lower()
        if suit_char not in _CHAR_TO_SUIT:
            raise HRErrors.INVALID_CARDS.create(message=f"Invalid suit character: {suit_char}", details={"card": card_str})

        return Card(rank=CardRank.of(card_str[:-1]), suit=_CHAR_TO_SUIT[suit_char])

    def to_compact_string(self) -> str:
        return f"{self.rank.value}{self.suit.as_char()}"

    def __str__(self) -> str:
        return self.to_compact_string()


class Blinds(ImmutableJsonModel):
    sb: Decimal = Field(default=Decimal("0.5"), description="Small blind in big-blind units", gt=0)
    bb: Decimal = Field(default=Decimal(1), description="Big blind in big-blind units", gt=0)


class ActionSize(ImmutableJsonModel):
    """Size attached to a chip-moving action.

    ``amount`` is always the incremental number of chips the action adds, never
    the player's running total for the street. ``type`` and ``value`` only keep
    how the size was chosen (e.g. 3x the bet or half pot).
    """

    type: BetSizeType = Field(default=BetSizeType.ABSOLUTE, description="How the size was expressed")
    value: Decimal = Field(..., description="Multiplier, pot fraction or absolute amount as chosen", ge=0)
    amount: Decimal = Field(..., description="Incremental chips added by the action", ge=0)

    @classmethod
    def absolute(cls, amount: Decimal | int | str) -> ActionSize:
        amount = Decimal(amount)
        return cls(type=BetSizeType.ABSOLUTE, value=amount, amount=amount)


class ActionRecord(BasePlayerAction, ImmutableJsonModel):
    """One entry of the hand's action log."""

    position: Position = Field(..., description="Seat taking the action")
    action: ActionType = Field(..., description="Action taken")
    street: Street = Field(..., description="Street the action belongs to")
    size: ActionSize | None = Field(default=None, description="Chips moved by the action")
    timestamp: int = Field(default_factory=get_now_ms, description="Epoch milliseconds when the action was recorded")

    @model_validator(mode="after")
    def validate_record(self) -> ActionRecord:
        if self.size is not None and not self.action.moves_chips:
            raise HRErrors.ILLEGAL_ACTION.create(
                message=f"Action {self.action} cannot carry a size",
                details={"action": self.action.value, "position": self.position.value},
            )
        return self

    @property
    def amount(self) -> Decimal | None:
        return self.size.amount if self.size is not None else None

    @classmethod
    def of(
        cls,
        position: Position,
        action: ActionType,
        street: Street,
        amount: Decimal | int | str | None = None,
    ) -> ActionRecord:
        size = ActionSize.absolute(amount) if amount is not None else None
        return cls(position=position, action=action, street=street, size=size)


class PlayerState(JsonModel):
    """A dealt-in seat."""

    position: Position = Field(..., description="Seat")
    stack: Decimal = Field(..., description="Remaining chips behind", ge=0)
    initial_stack: Decimal = Field(..., description="Stack at the start of the hand, before blinds", gt=0)
    active: bool = Field(default=True, description="False once the seat has folded")
    is_all_in: bool = Field(default=False, description="Whether the seat has committed its whole stack")
    last_action: ActionType | None = Field(default=None, description="Most recent action of this seat")

    @property
    def can_act(self) -> bool:
        return self.active and not self.is_all_in


class SidePot(JsonModel):
    """A main or side pot and the seats that can win it."""

    amount: Decimal = Field(..., description="Chips in the pot", ge=0)
    eligible_positions: list[Position] = Field(..., description="Non-folded seats eligible to win this pot")


class PotWinner(JsonModel):
    pot_index: int = Field(..., description="Index into the hand's side pots, main pot first", ge=0)
    pot_amount: Decimal = Field(..., description="Chips in the pot", ge=0)
    winners: list[Position] = Field(..., description="Seats splitting the pot")


class AvailableAction(BasePossibleAction):
    """An action the seat to act may take, with its sizing bounds."""

    action: ActionType = Field(..., description="Action type")
    call_amount: Decimal | None = Field(default=None, description="Chips a call adds", ge=0)
    min_amount: Decimal | None = Field(default=None, description="Smallest incremental amount for sizing actions", ge=0)
    max_amount: Decimal | None = Field(default=None, description="Largest incremental amount for sizing actions", ge=0)
    min_total: Decimal | None = Field(default=None, description="Street total after the smallest sizing", ge=0)
    max_total: Decimal | None = Field(default=None, description="Street total after the largest sizing", ge=0)
    sizes: list[ActionSize] = Field(default_factory=list, description="Preset sizes within bounds")


class ValidationResult(JsonModel):
    valid: bool = Field(..., description="Whether the proposed action may be applied")
    reason: str | None = Field(default=None, description="Human-readable rejection reason")
    error: ErrorDetails | None = Field(default=None, description="Structured rejection")

    @classmethod
    def ok(cls) -> ValidationResult:
        return cls(valid=True)

    @classmethod
    def reject(cls, error: AppException) -> ValidationResult:
        return cls(valid=False, reason=error.details.message, error=error.details)


class GameState(BaseGameState):
    """Authoritative state of the hand being recorded.

    Everything except ``actions``, ``board`` and ``pot_winners`` is a projection
    of the action log, recomputed by the state machine after every action.
    """

    env: GameType = GameType.NO_LIMIT_HOLDEM
    street: Street = Field(default=Street.PREFLOP, description="Current street")
    status: HandStatus = Field(default=HandStatus.BETTING, description="Betting, showdown or folded out")
    current_position: Position | None = Field(default=None, description="Seat to act, None once no betting remains")
    button: Position = Field(..., description="Dealer button seat")
    blinds: Blinds = Field(default_factory=Blinds, description="Blind sizes of this hand")
    players: list[PlayerState] = Field(..., description="Dealt-in seats in table order")
    posted_blinds: dict[Position, Decimal] = Field(default_factory=dict, description="Blinds posted at hand start")
    pot: Decimal = Field(default=ZERO, description="Chips in the middle", ge=0)
    last_bet: Decimal = Field(default=ZERO, description="Highest per-street contribution of a non-folded seat", ge=0)
    last_raise_increment: Decimal = Field(default=ZERO, description="Size of the last full raise this street", ge=0)
    actions: list[ActionRecord] = Field(default_factory=list, description="Ordered action log")
    board: list[Card] = Field(default_factory=list, description="Community cards")
    side_pots: list[SidePot] = Field(default_factory=list, description="Main pot followed by side pots")
    pot_winners: list[PotWinner] = Field(default_factory=list, description="Recorded pot winners")

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def positions(self) -> list[Position]:
        return [p.position for p in self.players]

    @property
    def starting_stacks(self) -> dict[Position, Decimal]:
        return {p.position: p.initial_stack for p in self.players}

    @property
    def folded_positions(self) -> set[Position]:
        return {p.position for p in self.players if not p.active}

    def get_player(self, position: Position) -> PlayerState:
        for player in self.players:
            if player.position == position:
                return player
        raise HRErrors.PLAYER_NOT_IN_HAND.create(message=f"Position {position} is not dealt in", details={"position": position.value})


class ShowdownHand(JsonModel):
    position: Position = Field(..., description="Seat showing or mucking")
    hand: list[Card] | Literal["muck"] = Field(..., description="Two hole cards or 'muck'")

    @model_validator(mode="after")
    def validate_hand(self) -> ShowdownHand:
        if self.hand != "muck" and len(self.hand) != 2:
            raise HRErrors.INVALID_CARDS.create(message="A shown hand has exactly two cards", details={"position": self.position.value})
        return self


class HandResult(JsonModel):
    """Hero's net result for the hand."""

    won: bool = Field(..., description="Whether hero finished the hand ahead")
    amount: Decimal = Field(..., description="Net chips won or lost by hero")


class Hand(JsonModel):
    """Completed hand as handed to persistence."""

    id: HandId = Field(..., description="Hand identifier")
    date: int = Field(..., description="Epoch milliseconds when the hand was saved")
    positions: list[Position] = Field(..., description="Dealt-in seats")
    button: Position = Field(..., description="Dealer button seat")
    hero_position: Position | None = Field(default=None, description="Hero's seat")
    hero_hand: list[Card] | None = Field(default=None, description="Hero's hole cards")
    actions: list[ActionRecord] = Field(default_factory=list, description="Full action log")
    board: list[Card] = Field(default_factory=list, description="Community cards")
    side_pots: list[SidePot] = Field(default_factory=list, description="Final pots")
    pot_winners: list[PotWinner] = Field(default_factory=list, description="Winners per pot")
    winner_positions: list[Position] = Field(default_factory=list, description="Every seat that won at least one pot")
    showdown_hands: list[ShowdownHand] = Field(default_factory=list, description="Hands shown or mucked at showdown")
    result: HandResult | None = Field(default=None, description="Hero's net result when every pot has a winner")
    initial_stacks: dict[Position, Decimal] = Field(default_factory=dict, description="Starting stacks that differ from the default")
    notes: str | None = Field(default=None, description="Free-form notes")
    favorite: bool = Field(default=False, description="Marked as favorite")


class HandRecorderEventType(StrEnum):
    """Event types for hand recorder events."""

    HAND_STARTED = "hand_started"
    ACTION_RECORDED = "action_recorded"
    POT_UPDATE = "pot_update"
    STREET_ADVANCED = "street_advanced"
    BOARD_DEALT = "board_dealt"
    SIDE_POTS_CREATED = "side_pots_created"
    HAND_SETTLED = "hand_settled"
    POT_WINNERS_RECORDED = "pot_winners_recorded"


class BaseHandRecorderEvent[T: HandRecorderEventType](BaseGameEvent):
    """Base class for all hand recorder events."""

    type: T = Field(..., description="Type of event")


class HandStartedEvent(BaseHandRecorderEvent[HandRecorderEventType.HAND_STARTED]):
    """Event emitted when a new hand starts."""

    type: Literal[HandRecorderEventType.HAND_STARTED] = HandRecorderEventType.HAND_STARTED
    hand_id: HandId = Field(..., description="Hand ID")
    positions: list[Position] = Field(..., description="Dealt-in seats")
    button: Position = Field(..., description="Dealer button seat")
    posted_blinds: dict[Position, Decimal] = Field(..., description="Blinds posted")
    starting_stacks: dict[Position, Decimal] = Field(..., description="Stacks before blinds")
    first_to_act: Position | None = Field(default=None, description="First seat to act preflop")


class ActionRecordedEvent(BaseHandRecorderEvent[HandRecorderEventType.ACTION_RECORDED]):
    """Event emitted when an action is appended to the log."""

    type: Literal[HandRecorderEventType.ACTION_RECORDED] = HandRecorderEventType.ACTION_RECORDED
    position: Position = Field(..., description="Seat that acted")
    action: ActionType = Field(..., description="Action taken")
    street: Street = Field(..., description="Street of the action")
    amount: Decimal = Field(..., description="Chips added by the action")
    stack_before: Decimal = Field(..., description="Stack before the action")
    stack_after: Decimal = Field(..., description="Stack after the action")
    went_all_in: bool | None = Field(default=None, description="Whether the action committed the whole stack (only present when true)")


class PotUpdateEvent(BaseHandRecorderEvent[HandRecorderEventType.POT_UPDATE]):
    """Event emitted when the pot is updated."""

    type: Literal[HandRecorderEventType.POT_UPDATE] = HandRecorderEventType.POT_UPDATE
    pot_before: Decimal = Field(..., description="Pot amount before update")
    pot_after: Decimal = Field(..., description="Pot amount after update")
    amount_added: Decimal = Field(..., description="Amount added to pot")
    last_bet_before: Decimal = Field(..., description="Highest street contribution before update")
    last_bet_after: Decimal = Field(..., description="Highest street contribution after update")


class StreetAdvancedEvent(BaseHandRecorderEvent[HandRecorderEventType.STREET_ADVANCED]):
    """Event emitted when a betting round closes and the next one begins."""

    type: Literal[HandRecorderEventType.STREET_ADVANCED] = HandRecorderEventType.STREET_ADVANCED
    from_street: Street = Field(..., description="Street that closed")
    to_street: Street = Field(..., description="Street now in progress")
    next_position: Position | None = Field(default=None, description="First seat to act, None on an all-in runout")


class BoardDealtEvent(BaseHandRecorderEvent[HandRecorderEventType.BOARD_DEALT]):
    """Event emitted when community cards are recorded."""

    type: Literal[HandRecorderEventType.BOARD_DEALT] = HandRecorderEventType.BOARD_DEALT
    street: Street = Field(..., description="Street the cards belong to")
    cards: list[Card] = Field(..., description="Cards recorded")
    total_board_cards: int = Field(..., description="Board size after the deal")


class SidePotsCreatedEvent(BaseHandRecorderEvent[HandRecorderEventType.SIDE_POTS_CREATED]):
    """Event emitted when side pots are created."""

    type: Literal[HandRecorderEventType.SIDE_POTS_CREATED] = HandRecorderEventType.SIDE_POTS_CREATED
    side_pots: list[SidePot] = Field(..., description="Side pots created")


class HandSettledEvent(BaseHandRecorderEvent[HandRecorderEventType.HAND_SETTLED]):
    """Event emitted when the hand reaches a terminal status."""

    type: Literal[HandRecorderEventType.HAND_SETTLED] = HandRecorderEventType.HAND_SETTLED
    status: HandStatus = Field(..., description="Terminal status")
    side_pots: list[SidePot] = Field(..., description="Final pots")
    pot_winners: list[PotWinner] = Field(default_factory=list, description="Pots already decided")


class PotWinnersRecordedEvent(BaseHandRecorderEvent[HandRecorderEventType.POT_WINNERS_RECORDED]):
    """Event emitted when showdown winners are recorded."""

    type: Literal[HandRecorderEventType.POT_WINNERS_RECORDED] = HandRecorderEventType.POT_WINNERS_RECORDED
    pot_winners: list[PotWinner] = Field(..., description="Winners per pot")


type HandRecorderEvent = Annotated[
    HandStartedEvent
    | ActionRecordedEvent
    | PotUpdateEvent
    | StreetAdvancedEvent
    | BoardDealtEvent
    | SidePotsCreatedEvent
    | HandSettledEvent
    | PotWinnersRecordedEvent,
    Field(discriminator="type"),
]
