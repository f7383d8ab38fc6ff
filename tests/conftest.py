import pytest
import structlog


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo logging configuration done by CLI runs."""
    yield
    structlog.reset_defaults()
