from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest

from tests._fixtures.tree_fixture import TreeFixture
from treelens.analysers import _registered


@pytest.fixture
def tree_fixture(tmp_path: Path) -> TreeFixture:
    """Provide a reusable directory builder rooted at the pytest tmp_path."""
    return TreeFixture(tmp_path)


@pytest.fixture
def sample_tree(tree_fixture: TreeFixture) -> TreeFixture:
    """Root with a.txt, b.jpg and sub/c.txt."""
    tree_fixture.write({"a.txt": "alpha\n", "b.jpg": "jpeg", "sub/c.txt": "gamma\n"})
    return tree_fixture


@pytest.fixture(autouse=True)
def _isolate_registry() -> Iterator[None]:
    saved = dict(_registered)
    yield
    _registered.clear()
    _registered.update(saved)
