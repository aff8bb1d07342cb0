from __future__ import annotations

from common.core.app_error import ErrorCategory, ErrorConfig

_ILLEGAL = ErrorCategory.ILLEGAL_ACTION
_SIZE = ErrorCategory.INVALID_SIZE
_CONFIG = ErrorCategory.CONFIGURATION
_SESSION = ErrorCategory.SESSION


class HandRecorderErrors:
    SCOPE = "hand_recorder"

    # Turn order / action legality
    HAND_FINISHED = ErrorConfig(scope=SCOPE, code="hand_finished", default_message="Hand has already finished", category=_ILLEGAL)
    OUT_OF_TURN = ErrorConfig(scope=SCOPE, code="out_of_turn", default_message="Position is not the one to act", category=_ILLEGAL)
    STREET_MISMATCH = ErrorConfig(scope=SCOPE, code="street_mismatch", default_message="Action street does not match the hand", category=_ILLEGAL)
    ILLEGAL_ACTION = ErrorConfig(scope=SCOPE, code="illegal_action", default_message="Action is not available", category=_ILLEGAL)
    PLAYER_NOT_IN_HAND = ErrorConfig(scope=SCOPE, code="player_not_in_hand", default_message="Position is not dealt in", category=_ILLEGAL)

    # Sizing
    MISSING_AMOUNT = ErrorConfig(scope=SCOPE, code="missing_amount", default_message="Bet or raise requires an amount", category=_SIZE)
    BET_TOO_SMALL = ErrorConfig(scope=SCOPE, code="bet_too_small", default_message="Amount is below the minimum", category=_SIZE)
    BET_TOO_LARGE = ErrorConfig(scope=SCOPE, code="bet_too_large", default_message="Amount exceeds the remaining stack", category=_SIZE)
    INVALID_CALL_AMOUNT = ErrorConfig(scope=SCOPE, code="invalid_call_amount", default_message="Call amount does not match the amount to call", category=_SIZE)
    INVALID_ALL_IN_AMOUNT = ErrorConfig(
        scope=SCOPE, code="invalid_all_in_amount", default_message="All-in amount does not match the remaining stack", category=_SIZE
    )

    # Engine consistency
    INVARIANT_VIOLATION = ErrorConfig(
        scope=SCOPE, code="invariant_violation", default_message="Hand state is inconsistent", category=ErrorCategory.INVARIANT_VIOLATION
    )

    # Configuration / hand setup
    CONFIGURATION_ERROR = ErrorConfig(scope=SCOPE, code="configuration_error", default_message="Invalid configuration", category=_CONFIG)
    INVALID_POSITIONS = ErrorConfig(scope=SCOPE, code="invalid_positions", default_message="Invalid set of dealt-in positions", category=_CONFIG)
    INVALID_BUTTON = ErrorConfig(scope=SCOPE, code="invalid_button", default_message="Invalid button position", category=_CONFIG)
    STACK_OUT_OF_RANGE = ErrorConfig(scope=SCOPE, code="stack_out_of_range", default_message="Starting stack is outside the allowed range", category=_CONFIG)
    INVALID_CARDS = ErrorConfig(scope=SCOPE, code="invalid_cards", default_message="Invalid cards", category=_CONFIG)

    # Session
    CONCURRENT_UPDATE = ErrorConfig(
        scope=SCOPE, code="concurrent_update", default_message="Another update is in progress", category=_SESSION, retryable=True
    )
    SESSION_CLOSED = ErrorConfig(scope=SCOPE, code="session_closed", default_message="Hand session is closed", category=_SESSION)
    INVALID_POT_WINNERS = ErrorConfig(scope=SCOPE, code="invalid_pot_winners", default_message="Invalid pot winners", category=_SESSION)
