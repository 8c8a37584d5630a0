"""Statistical checks of a BRDF: energy conservation and agreement of sampling with pdf."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import ClassVar

import numpy as np

from liltrace.brdf import Brdf
from liltrace.common import (
    PI,
    RandomSampler,
    chisqr,
    linspace,
    polar_to_card,
    square_to_cosine_hemisphere,
)

logger = logging.getLogger(__name__)

_RES_THETA = 64
_RES_PHI = 4 * _RES_THETA
_LOG_FLOAT_MAX = math.log(1.7976931348623157e308)


def _p_value(dof: int, t: float) -> float:
    """Chi-square p-value, with IEEE overflow behaviour where the series overflows."""
    try:
        return float(chisqr(dof, t))
    except OverflowError:
        # Either the power term overflowed (p-value degenerates to 1e-14)
        # or only the gamma normalisation did (p-value degenerates to 1).
        s = dof * 0.5
        z = t * 0.5
        if z > 1.0 and s * math.log(z) > _LOG_FLOAT_MAX:
            return 1e-14
        return 1.0


def _bin(wo) -> tuple[int, int] | None:
    """Hemisphere histogram cell of ``wo``, or None when it falls below the horizon."""
    x_c, y_c, z_c = (float(c) for c in wo)
    if not all(math.isfinite(c) for c in (x_c, y_c, z_c)):
        return None
    phi = math.atan2(y_c, x_c)
    if phi < 0.0:
        phi += 2.0 * PI
    x = phi / (2.0 * PI) * _RES_PHI
    y = math.acos(min(max(z_c, -1.0), 1.0)) / (0.5 * PI) * _RES_THETA
    if y >= _RES_THETA:
        return None
    return min(int(x), _RES_PHI - 1), int(y)


@dataclass
class BrdfValidation:
    """Per incident angle albedo and chi-square p-value of the sampling routine."""

    number_of_sample: ClassVar[int] = 10000
    number_of_theta: ClassVar[int] = 90

    thetas: list[float] = field(default_factory=list)
    directional_albedo: list[float] = field(default_factory=list)
    sampling_difference: list[float] = field(default_factory=list)
    energy_conservative: bool = False
    correct_sampling: bool = False
    reciprocity: bool = True
    found_nan: bool = False
    negative_value: bool = False

    @classmethod
    def validate(cls, brdf: Brdf, sampler: RandomSampler) -> "BrdfValidation":
        """Run the checks on ``brdf`` for ``number_of_theta`` incident angles."""
        logger.info("validate %s", getattr(brdf, "type", type(brdf).__name__))

        n_theta = cls.number_of_theta
        n_sample = cls.number_of_sample
        validation = cls(
            thetas=[float(t) for t in linspace(0.0, 0.5 * PI, n_theta, True)],
            directional_albedo=[0.0] * n_theta,
            sampling_difference=[0.0] * n_theta,
            energy_conservative=True,
        )

        dtheta = 0.5 * PI / _RES_THETA
        dphi = 2.0 * PI / _RES_PHI
        th = np.asarray(linspace(0.0, 0.5 * PI, _RES_THETA, True), dtype=float)
        solid_angle = np.sin(th) * dtheta * dphi

        for i, theta_i in enumerate(validation.thetas):
            wi = polar_to_card(theta_i, 0.0)

            # Histogram of sampled directions normalised to a density; each cell
            # keeps the value computed when it was last filled.
            accu = np.zeros((_RES_THETA, _RES_PHI))
            accu_value = np.zeros((_RES_THETA, _RES_PHI))
            accu_total = 0

            albedo = 0.0
            for _ in range(n_sample):
                bs = brdf.sample(wi, sampler)
                cell = _bin(bs.wo)
                accu_total += 1
                if cell is None:
                    if not all(math.isfinite(float(c)) for c in bs.wo):
                        validation.found_nan = True
                    continue
                x, y = cell
                accu[y, x] += 1.0
                accu_value[y, x] = accu[y, x] / (accu_total * solid_angle[y])
                value = float(np.asarray(bs.value, dtype=float)[0])
                if math.isnan(value):
                    validation.found_nan = True
                albedo += value

            albedo /= n_sample
            if albedo > 1.0:
                validation.energy_conservative = False

            pdf_sum = np.zeros((_RES_THETA, _RES_PHI))
            pdf_count = np.zeros((_RES_THETA, _RES_PHI))
            for _ in range(n_sample):
                wo = square_to_cosine_hemisphere(sampler.next_float(), sampler.next_float())
                cell = _bin(wo)
                if cell is None:
                    continue
                x, y = cell
                pdf_sum[y, x] += float(brdf.pdf(wi, wo))
                pdf_count[y, x] += 1.0

            with np.errstate(divide="ignore", invalid="ignore"):
                pdf_mean = np.where(pdf_count > 0, pdf_sum / pdf_count, 0.0)
                positive = pdf_mean > 0.0
                diff = accu_value[positive] - pdf_mean[positive]
                t_stat = float(np.sum(diff * diff / pdf_mean[positive]))

            dof = _RES_THETA * _RES_PHI - 1
            validation.correct_sampling = False
            validation.sampling_difference[i] = _p_value(dof, t_stat)
            validation.directional_albedo[i] = albedo

        return validation