"""Shared test fixtures for specmodel.

Provides builders for small hand-made API models, the path to the fixture
documents, and a CLI runner. These fixtures are automatically discovered by
pytest and available to all test modules without explicit imports.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

import pytest
from typer.testing import CliRunner

from specmodel.api.model import API, Enum, Message, Service
from specmodel.output import reset_output


FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams the cached
    references go stale once the test finishes.
    """
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _restore_package_logger() -> None:
    """Undo the handler the CLI installs on the ``specmodel`` logger.

    The CLI stops propagation to the root logger, which would hide records
    from ``caplog`` in later tests.
    """
    logger = logging.getLogger("specmodel")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


# ---------------------------------------------------------------------------
# Model builders
# ---------------------------------------------------------------------------


def make_api(
    messages: Optional[list[Message]] = None,
    enums: Optional[list[Enum]] = None,
    services: Optional[list[Service]] = None,
    package_name: str = "test",
) -> API:
    """Build an API with the given elements, none of them indexed yet."""
    return API(
        name="test",
        package_name=package_name,
        title="Test API",
        description="Used for testing",
        messages=messages or [],
        enums=enums or [],
        services=services or [],
    )


@pytest.fixture
def new_test_api() -> Callable[..., API]:
    """Factory fixture wrapping :func:`make_api`."""
    return make_api


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES_DIR
