import math

import pytest

from liltrace.brdf import Brdf, Diffuse
from liltrace.common import PI, RandomSampler
from liltrace.validation import BrdfValidation


class SmallValidation(BrdfValidation):
    number_of_theta = 3
    number_of_sample = 200


def _sampler():
    sampler = RandomSampler()
    sampler.seed(7)
    return sampler


def test_defaults_match_source():
    assert BrdfValidation.number_of_theta == 90
    assert BrdfValidation.number_of_sample == 10000
    fresh = BrdfValidation()
    assert fresh.reciprocity is True
    assert fresh.energy_conservative is False


def test_diffuse_albedo_is_recovered():
    result = SmallValidation.validate(Diffuse(0.5), _sampler())
    assert len(result.directional_albedo) == 3
    for albedo in result.directional_albedo:
        assert albedo == pytest.approx(0.5)
    assert result.energy_conservative is True


def test_thetas_cover_hemisphere_in_order():
    result = SmallValidation.validate(Diffuse(0.5), _sampler())
    assert len(result.thetas) == 3
    assert all(0.0 < t < 0.5 * PI for t in result.thetas)
    assert result.thetas == sorted(result.thetas)


def test_overbright_brdf_is_not_energy_conservative():
    result = SmallValidation.validate(Diffuse(1.5), _sampler())
    assert result.energy_conservative is False
    assert all(a > 1.0 for a in result.directional_albedo)


def test_black_brdf_has_zero_albedo():
    result = SmallValidation.validate(Brdf("Black"), _sampler())
    assert result.directional_albedo == [0.0, 0.0, 0.0]
    assert result.energy_conservative is True


def test_sampling_flags_and_p_values():
    result = SmallValidation.validate(Diffuse(0.5), _sampler())
    assert result.correct_sampling is False
    assert result.found_nan is False
    assert result.reciprocity is True
    assert len(result.sampling_difference) == 3
    assert all(math.isfinite(p) and p >= 0.0 for p in result.sampling_difference)