"""Spherical (GGX) microsurface and the BRDFs built on it."""

from __future__ import annotations

import math
from typing import Mapping

import numpy as np

from liltrace.brdf import BrdfSample
from liltrace.common import (
    PI,
    RandomSampler,
    fresnel_conductor,
    normalize,
    square_to_cosine_hemisphere,
    square_to_cosine_hemisphere_pdf,
    square_to_uniform_hemisphere,
    square_to_uniform_hemisphere_pdf,
)
from liltrace.shape_invariant import (
    DiffuseShapeInvariantMicrosurface,
    RoughShapeInvariantMicrosurface,
)


def _clamp(x: float, lo: float, hi: float) -> float:
    return min(max(float(x), lo), hi)


class SphereMicrosurface:
    """Unit-roughness microsurface made of spheres; its normals follow GGX."""

    def lambda_(self, wi_u) -> float:
        """Smith lambda function for direction ``wi_u``."""
        cos_sqr = _clamp(float(wi_u[2]) ** 2, 0.0001, 0.9999)
        tan_sqr = (1.0 - cos_sqr) / cos_sqr
        return (-1.0 + math.sqrt(1.0 + tan_sqr)) / 2.0

    def G1(self, wh_u, wi_u) -> float:
        return 1.0 / (1.0 + self.lambda_(wi_u))

    def G2(self, wh_u, wi_u, wo_u) -> float:
        """Height-correlated masking-shadowing."""
        return 1.0 / (1.0 + self.lambda_(wi_u) + self.lambda_(wo_u))

    def D(self, wh_u, wi_u=None) -> float:
        """Normal distribution; with ``wi_u`` the distribution of visible normals."""
        if wi_u is None:
            return 1.0 / PI
        wh_u = np.asarray(wh_u, dtype=float)
        wi_u = np.asarray(wi_u, dtype=float)
        cos_hi = _clamp(np.dot(wh_u, wi_u), 0.0, 1.0)
        with np.errstate(divide="ignore", invalid="ignore"):
            return float(np.float64(self.G1(wh_u, wi_u) * cos_hi) / (np.float64(wi_u[2]) * PI))

    def pdf(self, wh_u, wi_u=None) -> float:
        if wi_u is None:
            return square_to_cosine_hemisphere_pdf(wh_u)
        return self.D(wh_u, wi_u)

    def sample_D(self, sampler: RandomSampler, wi_u=None) -> np.ndarray:
        """Sample a normal; visible from ``wi_u`` (spherical-cap method) when given."""
        if wi_u is None:
            return square_to_cosine_hemisphere(sampler.next_float(), sampler.next_float())
        wi_u = np.asarray(wi_u, dtype=float)
        phi = 2.0 * PI * sampler.next_float()
        z = (1.0 - sampler.next_float()) * (1.0 + wi_u[2]) - wi_u[2]
        sin_theta = math.sqrt(_clamp(1.0 - z * z, 0.0, 1.0))
        x = sin_theta * math.cos(phi)
        y = sin_theta * math.sin(phi)
        return normalize(wi_u + np.array([x, y, z], dtype=float))


_ROUGH_PARAMS = {
    "rough_x": "scale[0]",
    "rough_y": "scale[1]",
    "eta": "eta",
    "kappa": "kappa",
    "sample_visible_distribution": "sample_visible_distribution",
}


class RoughGGX(RoughShapeInvariantMicrosurface):
    """Rough conductor with a GGX normal distribution."""

    def __init__(self, scale_x: float = 0.1, scale_y: float = 0.1) -> None:
        super().__init__("RoughGGX", scale_x, scale_y, SphereMicrosurface())

    def _link_params(self) -> Mapping[str, str]:
        return dict(_ROUGH_PARAMS)


class RoughGGXRetro(RoughShapeInvariantMicrosurface):
    """GGX conductor whose lobe is mirrored back toward the incident direction."""

    def __init__(self, scale_x: float = 0.1, scale_y: float = 0.1) -> None:
        super().__init__("RoughGGXRetro", scale_x, scale_y, SphereMicrosurface())

    def _link_params(self) -> Mapping[str, str]:
        return dict(_ROUGH_PARAMS)

    def eval(self, wi, wo, sampler: RandomSampler) -> np.ndarray:
        wi = np.asarray(wi, dtype=float)
        wo = np.asarray(wo, dtype=float)
        wi_retro = np.array([-wi[0], -wi[1], wi[2]], dtype=float)
        wh = normalize(wi_retro + wo)
        d = self.D(wh)
        g = self.G2(wh, wi, wo)
        f = fresnel_conductor(float(np.dot(wh, wi_retro)), self.eta, self.kappa)
        return d * g * f / (4.0 * _clamp(wi[2], 0.0001, 0.9999))

    def sample(self, wi, sampler: RandomSampler) -> BrdfSample:
        wo = square_to_uniform_hemisphere(sampler.next_float(), sampler.next_float())
        return BrdfSample(wo, np.asarray(self.eval(wi, wo, sampler), dtype=float))

    def pdf(self, wi, wo) -> float:
        return square_to_uniform_hemisphere_pdf()


class DiffuseGGX(DiffuseShapeInvariantMicrosurface):
    """Lambertian facets distributed as GGX normals."""

    def __init__(self, scale_x: float = 0.1, scale_y: float = 0.1) -> None:
        super().__init__("DiffuseGGX", scale_x, scale_y, SphereMicrosurface())

    def _link_params(self) -> Mapping[str, str]:
        return {
            "rough_x": "scale[0]",
            "rough_y": "scale[1]",
            "albedo": "albedo",
            "sample_visible_distribution": "sample_visible_distribution",
        }