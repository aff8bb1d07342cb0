import pytest

from common.logging import setup_logging


@pytest.fixture(scope="session", autouse=True)
def configure_logging() -> None:
    setup_logging()
