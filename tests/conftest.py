from __future__ import annotations

import pytest

from helpers import CountingStorage


@pytest.fixture
def storage() -> CountingStorage:
    return CountingStorage()
