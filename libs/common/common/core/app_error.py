from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from common.utils.json_model import JsonModel


class ErrorCategory(StrEnum):
    """Coarse classification used by callers to decide how to surface an error."""

    ILLEGAL_ACTION = "illegal_action"
    INVALID_SIZE = "invalid_size"
    INVARIANT_VIOLATION = "invariant_violation"
    CONFIGURATION = "configuration"
    SESSION = "session"
    GENERIC = "generic"


class ErrorDetails(JsonModel):
    scope: str
    code: str
    category: ErrorCategory = ErrorCategory.GENERIC
    message: str
    details: dict[str, Any] | None = None


class ErrorConfig(JsonModel):
    scope: str
    code: str
    default_message: str
    category: ErrorCategory = ErrorCategory.GENERIC
    retryable: bool = False

    def create(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
        cause: BaseException | None = None,
        retryable: bool | None = None,
    ) -> AppException:
        msg = message if message is not None else self.default_message
        retry = self.retryable if retryable is None else retryable

        # If the cause is also an AppError, merge details
        if isinstance(cause, AppException):
            scope = cause.details.scope
            code = cause.details.code
            category = cause.details.category
            retry = cause.retryable
            if details and cause.details.details:
                details = {**cause.details.details, **details}
            elif cause.details.details:
                details = cause.details.details
            if cause.details.message:
                msg = f"{msg}: {cause.details.message}" if msg else cause.details.message
        else:
            scope = self.scope
            code = self.code
            category = self.category

        app_error = AppError(
            details=ErrorDetails(scope=scope, code=code, category=category, message=msg, details=details),
            cause=cause,
            retryable=retry,
        )
        return AppException(app_error)

    def is_(self, error: BaseException) -> bool:
        return AppException.is_(error, self)


class Errors:
    class Generic:
        INVALID_INPUT = ErrorConfig(scope="generic", code="invalid_input", default_message="Invalid input")


class AppError(BaseModel):
    model_config = {"arbitrary_types_allowed": True}

    details: ErrorDetails = Field(..., description="Error details")
    retryable: bool = Field(default=False, description="Whether the error is retryable")
    cause: BaseException | None = Field(default=None, description="Underlying cause")

    def __init__(
        self,
        details: ErrorDetails,
        cause: BaseException | None = None,
        retryable: bool = False,
        **data: Any,
    ) -> None:
        computed_retryable = retryable and (cause is None or should_retry_exception(cause))
        super().__init__(details=details, retryable=computed_retryable, cause=cause, **data)


class AppException(Exception):
    """Exception wrapper for AppError that can be raised."""

    def __init__(self, app_error: AppError) -> None:
        self.app_error = app_error
        super().__init__(app_error.details.message)

    @property
    def details(self) -> ErrorDetails:
        return self.app_error.details

    @property
    def category(self) -> ErrorCategory:
        return self.app_error.details.category

    @property
    def retryable(self) -> bool:
        return self.app_error.retryable

    @property
    def cause(self) -> BaseException | None:
        return self.app_error.cause

    @staticmethod
    def is_(error: BaseException, error_config: ErrorConfig) -> bool:
        return (
            isinstance(error, AppException)
            and error.details.scope == error_config.scope
            and error.details.code == error_config.code
        )


def should_retry_exception(exception: BaseException) -> bool:
    if isinstance(exception, AppException):
        return exception.retryable
    return True
