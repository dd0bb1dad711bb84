from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import pytest

from complywatch.clock import ManualClock
from tests._fixtures.tree_builder import TreeBuilder


@pytest.fixture
def tree(tmp_path: Path) -> TreeBuilder:
    """Provide a reusable project tree rooted at the pytest tmp_path."""
    return TreeBuilder(tmp_path)


@pytest.fixture
def clock() -> ManualClock:
    """Deterministic clock starting at 2024-01-01T00:00:00Z."""
    return ManualClock()


@pytest.fixture(autouse=True)
def _restore_complywatch_logger() -> Iterator[None]:
    """Undo CLI logging setup so caplog keeps seeing complywatch records."""
    yield
    logger = logging.getLogger("complywatch")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
