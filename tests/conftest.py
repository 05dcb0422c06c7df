import numpy as np
import pytest
from hypothesis import HealthCheck, settings

from framezl import NumericColumn, StringColumn, StructColumn

settings.register_profile(
    "default",
    max_examples=50,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.data_too_large],
)
settings.register_profile("ci", max_examples=300, deadline=None)
settings.load_profile("default")


@pytest.fixture
def timestamps():
    return NumericColumn(np.arange(1000, 1100, dtype="<u8").tobytes(), 8)


@pytest.fixture
def records():
    rng = np.random.default_rng(7)
    return StructColumn(rng.integers(0, 255, size=12 * 40, dtype=np.uint8).tobytes(), 12)


@pytest.fixture
def names():
    return StringColumn.from_strings(["alpha", "", "gamma", "delta-epsilon", "z"])
