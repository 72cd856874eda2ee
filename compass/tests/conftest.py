import pytest

from compass.src.utils.config import FrontierConfig, NoveltyConfig, RNDConfig
from factories import FakeClock


@pytest.fixture
def novelty_config() -> NoveltyConfig:
    return NoveltyConfig(blend=0.3, low_threshold=0.4, saturation=0.25, fingerprint_bits=64, namespace="test")


@pytest.fixture
def rnd_config() -> RNDConfig:
    return RNDConfig(enabled=True, in_dim=64, out_dim=16, lr=0.001)


@pytest.fixture
def frontier_config() -> FrontierConfig:
    return FrontierConfig(max_entries=100)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
