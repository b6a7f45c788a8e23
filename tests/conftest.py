# file: tests/conftest.py
from __future__ import annotations

from pathlib import Path

import pytest

from scamshield.container import SharedContainer
from scamshield.store import BlockListStore


@pytest.fixture
def container(tmp_path: Path) -> SharedContainer:
    return SharedContainer(root=tmp_path / "containers", group_id="group.test.scamshield")


@pytest.fixture
def store(container: SharedContainer) -> BlockListStore:
    return BlockListStore(container)
