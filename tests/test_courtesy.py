import pytest

from app.core.config import Settings
from app.services.courtesy import (
    FlatCourtesyPolicy,
    ProgressiveCourtesyPolicy,
    build_courtesy_policy,
)


def test_flat_is_constant():
    policy = FlatCourtesyPolicy(3)
    assert {policy(n) for n in range(20)} == {3}


def test_progressive_grows_then_caps():
    policy = ProgressiveCourtesyPolicy(base=2, cap=5)
    values = [policy(n) for n in range(10)]
    assert values[:4] == [2, 3, 4, 5]
    assert all(v == 5 for v in values[3:])
    assert values == sorted(values)


def test_negative_count_rejected():
    with pytest.raises(ValueError):
        ProgressiveCourtesyPolicy()(-1)
    with pytest.raises(ValueError):
        FlatCourtesyPolicy()(-1)


def test_build_from_settings_defaults_to_flat():
    policy = build_courtesy_policy(Settings())
    assert isinstance(policy, FlatCourtesyPolicy)
    assert policy(0) == 3


def test_build_progressive_from_settings():
    policy = build_courtesy_policy(Settings(courtesy_policy="Progressive", courtesy_base=1, courtesy_cap=4))
    assert isinstance(policy, ProgressiveCourtesyPolicy)
    assert policy(0) == 1
    assert policy(10) == 4


def test_unknown_policy():
    with pytest.raises(ValueError, match="Unknown courtesy policy"):
        build_courtesy_policy(Settings(courtesy_policy="random"))
