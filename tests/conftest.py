import pytest

from engine.game import GameEngine

from tests.helpers import make_engine


@pytest.fixture
def engine() -> GameEngine:
    return make_engine()
