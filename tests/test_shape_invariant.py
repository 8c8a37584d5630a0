import numpy as np
import pytest

from liltrace.brdf import BrdfFlags, Diffuse
from liltrace.common import PI, RandomSampler, normalize
from liltrace.shape_invariant import (
    DiffuseShapeInvariantMicrosurface,
    RoughShapeInvariantMicrosurface,
    ShapeInvariantMicrosurface,
)

UP = np.array([0.0, 0.0, 1.0])


class FlatMicrosurface:
    """Constant distribution that always samples the geometric normal."""

    def __init__(self):
        self.sample_calls = []

    def D(self, wh_u, wi_u=None):
        return 1.0 / PI

    def pdf(self, wh_u, wi_u=None):
        return self.D(wh_u) * float(wh_u[2])

    def sample_D(self, sampler, wi_u=None):
        self.sample_calls.append(wi_u)
        sampler.next_float()
        return UP.copy()

    def G1(self, wh_u, wi_u):
        return 1.0

    def G2(self, wh_u, wi_u, wo_u):
        return 1.0


@pytest.fixture
def sampler():
    return RandomSampler(3)


WI = normalize([0.3, -0.2, 0.9])
WO = normalize([-0.4, 0.1, 0.7])


def test_unit_and_transformed_space_round_trip():
    s = ShapeInvariantMicrosurface("S", 0.3, 0.6, FlatMicrosurface())
    u = s.to_unit_space(WI)
    assert np.linalg.norm(u) == pytest.approx(1.0)
    assert np.allclose(s.to_transformed_space(u), WI)


def test_scale_one_keeps_directions():
    s = ShapeInvariantMicrosurface("S", 1.0, 1.0, FlatMicrosurface())
    assert np.allclose(s.to_unit_space(WI), WI)
    assert np.allclose(s.to_transformed_space(WO), WO)


def test_D_and_pdf_scale_with_determinant():
    ms = FlatMicrosurface()
    s = ShapeInvariantMicrosurface("S", 0.5, 0.5, ms)
    assert s.D(UP) * 0.25 == pytest.approx(ms.D(UP))
    assert s.pdf_wh(UP) * 0.25 == pytest.approx(ms.pdf(UP))
    assert s.D(UP, WI) * 0.25 == pytest.approx(ms.D(UP, WI))
    assert s.pdf_wh(UP, WI) * 0.25 == pytest.approx(ms.pdf(UP, WI))


def test_negative_scale_uses_absolute_determinant():
    a = ShapeInvariantMicrosurface("S", -0.5, 0.5, FlatMicrosurface())
    b = ShapeInvariantMicrosurface("S", 0.5, 0.5, FlatMicrosurface())
    assert a.D(UP) == pytest.approx(b.D(UP))


def test_sample_D_passes_unit_space_direction(sampler):
    ms = FlatMicrosurface()
    s = ShapeInvariantMicrosurface("S", 0.4, 0.8, ms)
    assert np.allclose(s.sample_D(sampler), UP)
    assert ms.sample_calls[-1] is None
    s.sample_D(sampler, WI)
    assert np.allclose(ms.sample_calls[-1], s.to_unit_space(WI))


def test_rough_defaults():
    r = RoughShapeInvariantMicrosurface("R", 0.1, 0.1, FlatMicrosurface())
    assert r.flags == BrdfFlags.ROUGH | BrdfFlags.REFLECTION
    assert np.allclose(r.eta, 1.0)
    assert np.allclose(r.kappa, 10000.0)
    assert r.sample_visible_distribution is False


def test_rough_sample_reflects_about_sampled_normal(sampler):
    r = RoughShapeInvariantMicrosurface("R", 0.2, 0.2, FlatMicrosurface())
    s = r.sample(WI, sampler)
    assert np.allclose(s.wo, [-WI[0], -WI[1], WI[2]])
    assert np.allclose(s.value, r.eval(WI, s.wo, sampler) / r.pdf(WI, s.wo))


def test_rough_sample_visible_uses_incident_direction(sampler):
    ms = FlatMicrosurface()
    r = RoughShapeInvariantMicrosurface("R", 0.2, 0.2, ms)
    r.sample_visible_distribution = True
    r.sample(WI, sampler)
    assert np.allclose(ms.sample_calls[-1], r.to_unit_space(WI))


def test_rough_pdf_symmetric_and_eval_cosine_reciprocal(sampler):
    r = RoughShapeInvariantMicrosurface("R", 0.3, 0.5, FlatMicrosurface())
    assert r.pdf(WI, WO) == pytest.approx(r.pdf(WO, WI))
    assert np.allclose(r.eval(WI, WO, sampler) * WI[2], r.eval(WO, WI, sampler) * WO[2])
    value = r.eval(WI, WO, sampler)
    assert value[0] == pytest.approx(value[1]) == pytest.approx(value[2])
    assert np.all(value > 0.0)


def test_diffuse_microsurface_matches_lambert_with_flat_facets(sampler):
    d = DiffuseShapeInvariantMicrosurface("DS", 0.5, 0.5, FlatMicrosurface())
    lambert = Diffuse(0.5)
    assert d.flags == BrdfFlags.DIFFUSE | BrdfFlags.REFLECTION
    assert np.allclose(d.eval(WI, WO, sampler), lambert.eval(WI, WO, sampler))


def test_diffuse_microsurface_pdf_and_sample(sampler):
    d = DiffuseShapeInvariantMicrosurface("DS", 0.5, 0.5, FlatMicrosurface())
    assert d.pdf(WI, WO) == pytest.approx(Diffuse().pdf(WI, WO))
    s = d.sample(WI, sampler)
    assert s.wo[2] > 0.0
    assert np.allclose(s.value, d.albedo, atol=1e-4)