from __future__ import annotations

import pytest

from funding_fixtures import build_funding_db


@pytest.fixture
def funding_db(tmp_path):
    return build_funding_db(tmp_path / "funding-lite.sqlite")


@pytest.fixture
def funding_bytes(funding_db):
    return funding_db.read_bytes()
