from __future__ import annotations

from abc import ABC, abstractmethod
from enum import StrEnum
from typing import Any, Generic, TypeVar

from pydantic import Field

from common.ids import EventId, HandId, new_event_id
from common.utils import JsonModel
from common.utils.utils import get_now_ms


class GameType(StrEnum):
    """Supported game types."""

    NO_LIMIT_HOLDEM = "no_limit_holdem"


class BaseGameConfig(JsonModel, ABC):
    """Base configuration for all games."""

    env: GameType = Field(..., description="Type of game")
    max_players: int = Field(..., description="Maximum number of players", ge=2)
    min_players: int = Field(..., description="Minimum number of players", ge=2)

    def model_post_init(self, __context: Any, /) -> None:
        """Validate configuration after initialization."""
        if self.min_players > self.max_players:
            raise ValueError("min_players cannot be greater than max_players")


class BaseGameState(JsonModel, ABC):
    """Base game state for all games."""

    hand_id: HandId = Field(..., description="Unique identifier for the hand")
    env: GameType = Field(..., description="Type of game")
    turn: int = Field(default=0, description="Number of actions recorded so far", ge=0)


class BaseGameEvent(JsonModel, ABC):
    """Base game event for all games."""

    id: EventId = Field(default_factory=new_event_id, description="Unique event ID")
    timestamp: int = Field(default_factory=get_now_ms, description="Event timestamp in epoch milliseconds")
    turn: int = Field(..., description="Number of actions recorded when the event was emitted")


class BasePlayerAction(JsonModel, ABC):
    """Base recorded action for all games."""


class BasePossibleAction(JsonModel, ABC):
    """Base description of an action a player may take."""


TConfig = TypeVar("TConfig", bound=BaseGameConfig)
TState = TypeVar("TState", bound=BaseGameState)
TEvent = TypeVar("TEvent", bound=BaseGameEvent)
TAction = TypeVar("TAction", bound=BasePlayerAction)
TPossibleAction = TypeVar("TPossibleAction", bound=BasePossibleAction)
TSeat = TypeVar("TSeat")


class EventCollector(Generic[TEvent]):  # noqa: UP046
    """Collects events during game operations."""

    _events: list[TEvent]

    def __init__(self) -> None:
        self._events = []

    def add(self, event: TEvent) -> None:
        self._events.append(event)

    def get_events(self) -> list[TEvent]:
        return self._events.copy()


class GameEnv(ABC, Generic[TState, TEvent, TAction, TConfig, TPossibleAction, TSeat]):  # noqa: UP046
    """Abstract base class for game-specific state updates.

    Implementations never mutate the state they are given: every transition
    returns a new state so callers can keep the previous one on failure.
    """

    config: TConfig

    def __init__(self, config: TConfig) -> None:
        self.config = config

    @classmethod
    @abstractmethod
    def create(cls, config: TConfig | None = None) -> GameEnv[TState, TEvent, TAction, TConfig, TPossibleAction, TSeat]: ...

    @abstractmethod
    def apply_action(self, state: TState, action: TAction, event_collector: EventCollector[TEvent] | None = None) -> TState:
        """Apply an action and return the resulting state."""

    @abstractmethod
    def calc_available_actions(self, state: TState, seat: TSeat) -> list[TPossibleAction]:
        """Calculate the actions a seat may take in the given state."""
