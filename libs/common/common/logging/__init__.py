from .setup_logging import setup_logging
from .std_logging_config import StdLoggingConfig, get_common_logger_config

__all__ = ["StdLoggingConfig", "get_common_logger_config", "setup_logging"]
