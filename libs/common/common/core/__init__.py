from .app_error import AppError, AppException, ErrorCategory, ErrorConfig, ErrorDetails, Errors

__all__ = ["AppError", "AppException", "ErrorCategory", "ErrorConfig", "ErrorDetails", "Errors"]
