"""Live no-limit hold'em hand recorder."""

from .action_validator import can_select_position, get_selectable_positions, is_action_allowed, validate_action
from .contributions import (
    contributions_this_street,
    current_pot,
    max_contribution_this_street,
    pot_before_street,
    pot_increase_this_street,
    total_contributions,
)
from .hand_recorder_api import (
    TABLE_ORDER,
    ActionRecord,
    ActionSize,
    ActionType,
    AvailableAction,
    BetSizeType,
    Blinds,
    Card,
    GameState,
    Hand,
    HandRecorderEvent,
    HandResult,
    HandStatus,
    PlayerState,
    Position,
    PotWinner,
    ShowdownHand,
    SidePot,
    Street,
    ValidationResult,
)
from .hand_recorder_config import HandRecorderConfig, HandRecorderSettings
from .hand_recorder_env import HandRecorderEnv
from .hand_recorder_errors import HandRecorderErrors
from .legality import available_actions
from .side_pots import calculate_side_pots, calculate_winnings
from .hand_session import HandSession, HandStore, InMemoryHandStore

start_new_hand = HandSession.start

__all__ = [
    "TABLE_ORDER",
    "ActionRecord",
    "ActionSize",
    "ActionType",
    "AvailableAction",
    "BetSizeType",
    "Blinds",
    "Card",
    "GameState",
    "Hand",
    "HandRecorderConfig",
    "HandRecorderEnv",
    "HandRecorderErrors",
    "HandRecorderEvent",
    "HandRecorderSettings",
    "HandResult",
    "HandSession",
    "HandStatus",
    "HandStore",
    "InMemoryHandStore",
    "PlayerState",
    "Position",
    "PotWinner",
    "ShowdownHand",
    "SidePot",
    "Street",
    "ValidationResult",
    "available_actions",
    "calculate_side_pots",
    "calculate_winnings",
    "can_select_position",
    "contributions_this_street",
    "current_pot",
    "get_selectable_positions",
    "is_action_allowed",
    "max_contribution_this_street",
    "pot_before_street",
    "pot_increase_this_street",
    "start_new_hand",
    "total_contributions",
    "validate_action",
]
