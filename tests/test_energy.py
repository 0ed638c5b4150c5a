import pytest

from memsim.config import CacheGeometry
from memsim.energy import AccessEnergy, EnergyModel, amat


@pytest.fixture
def model():
    return EnergyModel(CacheGeometry(1024, 32, 1), 50.0, 200.0, 1.0)


def test_static_energy(model):
    # 1024 data bytes + 32 lines * 22 tag bits / 8
    assert model.static_energy() == pytest.approx(1112 * 0.5 + 50.0)


def test_dynamic_energy(model):
    assert model.dynamic_energy(True) == pytest.approx(22 * 2 + 256 * 5)
    assert model.dynamic_energy(False) == pytest.approx(22 * 2 + 256 * 5 * 0.35)


def test_penalty_only_on_miss(model):
    assert model.penalty_energy(True) == 0.0
    assert model.penalty_energy(False) == pytest.approx(200.0)


def test_total_is_sum_of_parts(model):
    for is_hit in (False, True, True, False, True):
        model.charge(is_hit)
        t = model.totals
        assert t.total_energy == pytest.approx(
            t.static_energy + t.dynamic_energy + t.miss_penalty_energy)


def test_totals_never_decrease(model):
    previous = 0.0
    for is_hit in (False, True, False, True):
        model.charge(is_hit)
        assert model.totals.total_energy >= previous
        previous = model.totals.total_energy


def test_doubling_voltage_quadruples_dynamic_and_penalty():
    geo = CacheGeometry(1024, 32, 1)
    low = EnergyModel(geo, 50.0, 200.0, 1.0)
    high = EnergyModel(geo, 50.0, 200.0, 2.0)
    for is_hit in (True, False):
        assert high.dynamic_energy(is_hit) == pytest.approx(4 * low.dynamic_energy(is_hit))
        assert high.penalty_energy(is_hit) == pytest.approx(4 * low.penalty_energy(is_hit))
    # leakage carries an extra factor of V
    assert high.static_energy() == pytest.approx(1112 * 0.5 * 2 * 4 + 50.0 * 4)


def test_cost_does_not_record(model):
    energy = model.cost(False)
    assert isinstance(energy, AccessEnergy)
    assert energy.total == pytest.approx(energy.static + energy.dynamic + energy.penalty)
    assert model.totals.total_energy == 0.0


def test_reset(model):
    model.charge(False)
    model.reset()
    assert model.totals.as_dict() == {
        "static_energy": 0.0, "dynamic_energy": 0.0,
        "miss_penalty_energy": 0.0, "total_energy": 0.0}


def test_amat():
    assert amat(0, 0) == 1.0
    assert amat(10, 0) == 1.0
    assert amat(2, 1) == pytest.approx(51.0)
    assert amat(4, 4) == pytest.approx(101.0)
