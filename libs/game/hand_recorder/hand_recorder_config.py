from __future__ import annotations

from decimal import Decimal

from game_api import BaseGameConfig, GameType
from hand_recorder.hand_recorder_api import TABLE_ORDER, Blinds
from hand_recorder.hand_recorder_errors import HandRecorderErrors as HRErrors
from pydantic import ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from common.utils.utils import get_logger

logger = get_logger(__name__)


class HandRecorderConfig(BaseGameConfig):
    """Ruleset for recording a six-max no-limit cash hand. Read only at hand start."""

    model_config = ConfigDict(frozen=True)

    env: GameType = GameType.NO_LIMIT_HOLDEM
    max_players: int = Field(default=len(TABLE_ORDER), description="Maximum number of dealt-in seats", ge=2)
    min_players: int = Field(default=2, description="Minimum number of dealt-in seats", ge=2)
    default_stack: Decimal = Field(default=Decimal(100), description="Stack used for seats without an override", gt=0)
    min_stack: Decimal = Field(default=Decimal(1), description="Smallest allowed starting stack", gt=0)
    max_stack: Decimal = Field(default=Decimal(300), description="Largest allowed starting stack", gt=0)
    blinds: Blinds = Field(default_factory=Blinds, description="Blind sizes")

    @model_validator(mode="after")
    def validate_config(self) -> HandRecorderConfig:
        """Validate configuration after initialization."""
        if self.blinds.bb <= self.blinds.sb:
            raise HRErrors.CONFIGURATION_ERROR.create(
                message="Big blind must be greater than small blind",
                details={"big_blind": str(self.blinds.bb), "small_blind": str(self.blinds.sb)},
            )
        if self.min_stack < self.blinds.bb:
            raise HRErrors.CONFIGURATION_ERROR.create(
                message="Minimum stack must cover the big blind",
                details={"min_stack": str(self.min_stack), "big_blind": str(self.blinds.bb)},
            )
        if not self.min_stack <= self.default_stack <= self.max_stack:
            raise HRErrors.CONFIGURATION_ERROR.create(
                message="Default stack must lie between the minimum and maximum stack",
                details={"default_stack": str(self.default_stack), "min_stack": str(self.min_stack), "max_stack": str(self.max_stack)},
            )
        if self.max_players > len(TABLE_ORDER):
            raise HRErrors.CONFIGURATION_ERROR.create(
                message=f"A table has at most {len(TABLE_ORDER)} seats",
                details={"max_players": self.max_players},
            )
        return self

    @property
    def small_blind(self) -> Decimal:
        return self.blinds.sb

    @property
    def big_blind(self) -> Decimal:
        return self.blinds.bb

    def is_stack_allowed(self, stack: Decimal) -> bool:
        return self.min_stack <= stack <= self.max_stack

    @classmethod
    def from_env(cls) -> HandRecorderConfig:
        return HandRecorderSettings().to_config()


class HandRecorderSettings(BaseSettings):
    """Environment overrides, e.g. ``HAND_RECORDER_DEFAULT_STACK=200`` or ``HAND_RECORDER_BLINDS__BB=2``."""

    model_config = SettingsConfigDict(env_prefix="HAND_RECORDER_", env_nested_delimiter="__", extra="ignore")

    default_stack: Decimal = Decimal(100)
    min_stack: Decimal = Decimal(1)
    max_stack: Decimal = Decimal(300)
    blinds: Blinds = Field(default_factory=Blinds)

    def to_config(self) -> HandRecorderConfig:
        config = HandRecorderConfig(
            default_stack=self.default_stack,
            min_stack=self.min_stack,
            max_stack=self.max_stack,
            blinds=self.blinds,
        )
        logger.debug("Loaded hand recorder config from environment", extra=config.to_dict(mode="json"))
        return config
