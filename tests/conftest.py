import logging
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = REPO_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from methodstats.intercept.interceptor import CallInterceptor, configure
from methodstats.sinks.memory import InMemoryMeterRegistry


class FakeClock:
    def __init__(self, *readings: float) -> None:
        self._readings = list(readings)

    def __call__(self) -> float:
        return self._readings.pop(0)


@pytest.fixture
def schema_path() -> Path:
    path = REPO_ROOT / "config" / "schema.json"
    assert path.exists()
    return path


@pytest.fixture
def meter_registry() -> InMemoryMeterRegistry:
    return InMemoryMeterRegistry()


@pytest.fixture
def interceptor(meter_registry) -> CallInterceptor:
    return CallInterceptor(sink=meter_registry)


@pytest.fixture
def fake_clock():
    return FakeClock


@pytest.fixture(autouse=True)
def _reset_methodstats_state():
    yield
    configure()
    logger = logging.getLogger("methodstats")
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
