import pytest

from memsim.config import SimulatorConfig
from memsim.memory_system import MemorySystem
from memsim.simulator import Simulator


@pytest.fixture
def make_system():
    def _make(**kwargs):
        return MemorySystem(SimulatorConfig(**kwargs))
    return _make


@pytest.fixture
def system(make_system):
    # 1 KiB direct mapped, 32-byte blocks: 32 sets
    return make_system(cache_size=1024, block_size=32, associativity=1)


@pytest.fixture
def sim():
    return Simulator()
