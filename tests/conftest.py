import pytest

from core.auth import build_access_control
from core.db import get_engine, init_db
from core.sessions import MemorySessionBackend
from core.settings import AuthConfig, Settings

class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def set(self, now: float) -> None:
        self.now = now

@pytest.fixture
def clock():
    return FakeClock()

@pytest.fixture
def settings():
    return Settings(auth=AuthConfig(bcrypt_rounds=4))

@pytest.fixture
def engine():
    eng = get_engine("sqlite://")
    init_db(eng)
    yield eng
    eng.dispose()

@pytest.fixture
def access(engine, settings, clock):
    return build_access_control(engine, settings, backend=MemorySessionBackend(), clock=clock)

@pytest.fixture
def sql_access(engine, settings, clock):
    return build_access_control(engine, settings, clock=clock)

