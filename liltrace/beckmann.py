"""Beckmann microsurface and the rough conductor built on it."""

from __future__ import annotations

import math
from typing import Mapping

import numpy as np

from liltrace.common import PI, RandomSampler
from liltrace.shape_invariant import RoughShapeInvariantMicrosurface


class BeckmannMicrosurface:
    """Unit-roughness Beckmann normal distribution."""

    def D(self, wh_u, wi_u=None) -> float:
        """Normal distribution; the incident direction is ignored."""
        cos_sqr = np.float64(wh_u[2]) ** 2
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            tan_sqr = (1.0 - cos_sqr) / cos_sqr
            return float(np.exp(-tan_sqr) / (cos_sqr * cos_sqr * PI))

    def pdf(self, wh_u, wi_u=None) -> float:
        return self.D(wh_u) * float(wh_u[2])

    def sample_D(self, sampler: RandomSampler, wi_u=None) -> np.ndarray:
        """Sample a normal proportionally to ``D * cos``."""
        remaining = 1.0 - sampler.next_float()
        log_sample = math.log(remaining) if remaining > 0.0 else 0.0
        tan_theta_sqr = -log_sample
        phi = sampler.next_float() * 2.0 * PI
        cos_theta = 1.0 / math.sqrt(1.0 + tan_theta_sqr)
        sin_theta = math.sqrt(max(0.0, 1.0 - cos_theta * cos_theta))
        return np.array(
            [sin_theta * math.cos(phi), sin_theta * math.sin(phi), cos_theta], dtype=float
        )

    def lambda_(self, wi_u) -> float:
        """Rational approximation of the Beckmann Smith lambda."""
        cos_sqr = np.float64(wi_u[2]) ** 2
        with np.errstate(divide="ignore", invalid="ignore"):
            tan_sqr = (1.0 - cos_sqr) / cos_sqr
            abs_tan = abs(np.sqrt(tan_sqr))
            if np.isinf(abs_tan):
                return 0.0
            a = np.float64(1.0) / abs_tan
        if a >= 1.6:
            return 0.0
        return float((1.0 - 1.259 * a + 0.396 * a * a) / (3.535 * a + 2.181 * a * a))

    def G1(self, wh_u, wi_u) -> float:
        return 1.0 / (1.0 + self.lambda_(wi_u))

    def G2(self, wh_u, wi_u, wo_u) -> float:
        """Height-correlated masking-shadowing."""
        return 1.0 / (1.0 + self.lambda_(wi_u) + self.lambda_(wo_u))


class RoughBeckmann(RoughShapeInvariantMicrosurface):
    """Rough conductor with a Beckmann normal distribution."""

    def __init__(self, scale_x: float = 0.1, scale_y: float = 0.1) -> None:
        super().__init__("RoughBeckmann", scale_x, scale_y, BeckmannMicrosurface())

    def _link_params(self) -> Mapping[str, str]:
        return {
            "rough_x": "scale[0]",
            "rough_y": "scale[1]",
            "eta": "eta",
            "kappa": "kappa",
        }