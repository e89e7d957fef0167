# tests/conftest.py
import random
import sys
from pathlib import Path

import pytest

# Add project root to sys.path so the flat modules import without installing
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

KNOWN_SOLUTION = [int(ch) for ch in (
    "534678912"
    "672195348"
    "198342567"
    "859761423"
    "426853791"
    "713924856"
    "961537284"
    "287419635"
    "345286179"
)]

KNOWN_PUZZLE = [int(ch) for ch in (
    "530070000"
    "600195000"
    "098000060"
    "800060003"
    "400803001"
    "700020006"
    "060000280"
    "000419005"
    "000080079"
)]


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def solution():
    return list(KNOWN_SOLUTION)


@pytest.fixture
def puzzle():
    return list(KNOWN_PUZZLE)


@pytest.fixture
def client(tmp_path):
    from app import app

    app.config["TESTING"] = True
    app.config["DB_PATH"] = str(tmp_path / "test.db")
    with app.test_client() as c:
        yield c
