"""Tests for the recorder configuration and its error catalog."""

from decimal import Decimal

import pytest
from hand_recorder import Blinds, HandRecorderConfig, HandRecorderErrors as HRErrors, HandRecorderSettings

from common.core.app_error import AppException, ErrorCategory

from .test_helpers import HandTest, chips


class TestHandRecorderConfig:
    """Validation of the ruleset."""

    def test_defaults(self) -> None:
        config = HandRecorderConfig()
        assert config.default_stack == 100
        assert config.min_stack == 1
        assert config.max_stack == 300
        assert config.small_blind == chips(0.5)
        assert config.big_blind == 1
        assert config.max_players == 6
        assert config.min_players == 2

    def test_config_is_immutable(self) -> None:
        config = HandRecorderConfig()
        with pytest.raises(ValueError):
            config.default_stack = Decimal(200)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"blinds": Blinds(sb=Decimal(1), bb=Decimal(1))},
            {"min_stack": Decimal("0.5")},
            {"default_stack": Decimal(400)},
            {"min_stack": Decimal(50), "default_stack": Decimal(20)},
            {"max_players": 7},
        ],
    )
    def test_invalid_config(self, overrides: dict) -> None:
        with pytest.raises(AppException) as exc_info:
            HandRecorderConfig(**overrides)
        assert HRErrors.CONFIGURATION_ERROR.is_(exc_info.value)
        assert exc_info.value.category is ErrorCategory.CONFIGURATION

    def test_stack_bounds(self) -> None:
        config = HandRecorderConfig()
        assert config.is_stack_allowed(Decimal(1))
        assert config.is_stack_allowed(Decimal(300))
        assert not config.is_stack_allowed(Decimal("0.99"))
        assert not config.is_stack_allowed(Decimal(301))

    def test_larger_blinds(self) -> None:
        """Blind sizes come from the config and drive the minimum bet."""
        test = HandTest.create(small_blind=1, big_blind=2, min_stack=2, default_stack=200, max_stack=400)
        assert test.state.pot == chips(3)
        assert test.state.blinds.bb == 2


class TestHandRecorderSettings:
    """Loading the config from the environment."""

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HAND_RECORDER_DEFAULT_STACK", "150")
        monkeypatch.setenv("HAND_RECORDER_MIN_STACK", "2")
        monkeypatch.setenv("HAND_RECORDER_BLINDS__BB", "2")

        config = HandRecorderConfig.from_env()
        assert config.default_stack == 150
        assert config.min_stack == 2
        assert config.big_blind == 2
        assert config.small_blind == chips(0.5)

    def test_invalid_env_is_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HAND_RECORDER_MAX_STACK", "50")
        with pytest.raises(AppException) as exc_info:
            HandRecorderSettings().to_config()
        assert HRErrors.CONFIGURATION_ERROR.is_(exc_info.value)


class TestErrorCatalog:
    """Every error belongs to one category."""

    def test_categories(self) -> None:
        assert HRErrors.OUT_OF_TURN.category is ErrorCategory.ILLEGAL_ACTION
        assert HRErrors.BET_TOO_SMALL.category is ErrorCategory.INVALID_SIZE
        assert HRErrors.INVARIANT_VIOLATION.category is ErrorCategory.INVARIANT_VIOLATION
        assert HRErrors.INVALID_BUTTON.category is ErrorCategory.CONFIGURATION
        assert HRErrors.CONCURRENT_UPDATE.category is ErrorCategory.SESSION

    def test_concurrent_update_is_retryable(self) -> None:
        error = HRErrors.CONCURRENT_UPDATE.create()
        assert error.retryable
        assert not HRErrors.OUT_OF_TURN.create().retryable

    def test_error_wrapping_keeps_original_code(self) -> None:
        cause = HRErrors.BET_TOO_SMALL.create(details={"amount": "1"})
        wrapped = HRErrors.ILLEGAL_ACTION.create(message="Rejected", cause=cause)
        assert HRErrors.BET_TOO_SMALL.is_(wrapped)
        assert wrapped.details.details == {"amount": "1"}
        assert wrapped.cause is cause
