import numpy as np
import pytest

from liltrace.brdf import (
    Brdf,
    BrdfFlags,
    BrdfSample,
    Diffuse,
    Emissive,
    Mix,
    TestBrdf as ProbeBrdf,
)
from liltrace.common import RandomSampler, normalize


@pytest.fixture
def sampler():
    return RandomSampler(7)


WI = normalize([0.3, -0.2, 0.9])
WO = normalize([-0.4, 0.1, 0.7])


def test_base_brdf_is_black_and_not_emissive(sampler):
    brdf = Brdf("Base")
    assert np.array_equal(brdf.eval(WI, WO, sampler), np.zeros(3))
    assert np.array_equal(brdf.emission(), np.zeros(3))
    assert brdf.is_emissive() is False
    assert brdf.type == "Base"


def test_base_brdf_sample_is_upper_hemisphere_with_zero_value(sampler):
    brdf = Brdf("Base")
    for _ in range(20):
        s = brdf.sample(WI, sampler)
        assert isinstance(s, BrdfSample)
        assert s.wo[2] > 0.0
        assert np.linalg.norm(s.wo) == pytest.approx(1.0, abs=1e-6)
        assert np.array_equal(s.value, np.zeros(3))


def test_diffuse_flags_and_params():
    d = Diffuse()
    assert d.flags == BrdfFlags.DIFFUSE | BrdfFlags.REFLECTION
    assert d.params == {"albedo": "albedo"}
    assert np.allclose(d.albedo, [0.5, 0.5, 0.5])


def test_diffuse_eval_equals_albedo_times_pdf(sampler):
    d = Diffuse((0.2, 0.4, 0.8))
    assert np.allclose(d.eval(WI, WO, sampler), d.albedo * d.pdf(WI, WO))


def test_diffuse_eval_below_horizon_is_zero(sampler):
    d = Diffuse(0.7)
    assert np.array_equal(d.eval(WI, [0.0, 0.6, -0.8], sampler), np.zeros(3))


def test_diffuse_sample_value_is_albedo(sampler):
    d = Diffuse((0.1, 0.2, 0.3))
    for _ in range(10):
        s = d.sample(WI, sampler)
        assert np.allclose(s.value, d.albedo)
        assert d.pdf(WI, s.wo) > 0.0


def test_emissive_defaults_and_emission():
    e = Emissive()
    assert e.is_emissive()
    assert np.allclose(e.emission(), [1.0, 1.0, 1.0])
    e2 = Emissive((2.0, 3.0, 4.0))
    assert np.allclose(e2.emission(), [2.0, 3.0, 4.0])


def test_test_brdf_parameters_and_eval(sampler):
    t = ProbeBrdf()
    assert t.v1 == 0.5
    assert t.v3 == [2.0, 1.0, 3.0, 4.0, 9.0]
    assert t.params == {"float": "v1", "vec3": "v2", "array": "v3"}
    assert np.allclose(t.eval(WI, WO, sampler), [WO[2]] * 3)


def test_mix_flags_after_init():
    m = Mix()
    assert m.flags == BrdfFlags(0)
    m.init()
    assert m.flags == BrdfFlags.DIFFUSE | BrdfFlags.REFLECTION
    m2 = Mix(Diffuse(), Emissive())
    m2.init()
    assert m2.is_emissive()


def test_mix_eval_and_pdf_are_weighted_blends(sampler):
    m = Mix(weight=0.25)
    expected = 0.25 * m.brdf1.eval(WI, WO, sampler) + 0.75 * m.brdf2.eval(WI, WO, sampler)
    assert np.allclose(m.eval(WI, WO, sampler), expected)
    assert m.pdf(WI, WO) == pytest.approx(m.brdf1.pdf(WI, WO))


@pytest.mark.parametrize("weight, which", [(1.0, "brdf1"), (0.0, "brdf2")])
def test_mix_sample_picks_component(sampler, weight, which):
    m = Mix(weight=weight)
    expected = getattr(m, which).albedo
    for _ in range(10):
        assert np.allclose(m.sample(WI, sampler).value, expected)


def test_ids_are_increasing():
    a = Diffuse()
    b = Diffuse()
    assert b.id > a.id