"""Microfacet BRDFs built on a unit-roughness microsurface stretched by a scale."""

from __future__ import annotations

from typing import Protocol

import numpy as np

from liltrace.brdf import Brdf, BrdfFlags, BrdfSample, as_spectrum
from liltrace.common import (
    PI,
    RandomSampler,
    fresnel_conductor,
    normalize,
    reflect,
    square_to_cosine_hemisphere,
    square_to_cosine_hemisphere_pdf,
)


class Microsurface(Protocol):
    """Unit-roughness microsurface statistics."""

    def D(self, wh_u, wi_u=None) -> float: ...

    def pdf(self, wh_u, wi_u=None) -> float: ...

    def sample_D(self, sampler, wi_u=None) -> np.ndarray: ...

    def G1(self, wh_u, wi_u) -> float: ...

    def G2(self, wh_u, wi_u, wo_u) -> float: ...


def _clamp(x: float, lo: float, hi: float) -> float:
    return min(max(float(x), lo), hi)


class ShapeInvariantMicrosurface(Brdf):
    """Brdf whose microsurface ``ms`` is anisotropically scaled by ``scale``."""

    def __init__(self, type_name: str, scale_x: float, scale_y: float, microsurface: Microsurface) -> None:
        super().__init__(type_name)
        self.scale = np.array([scale_x, scale_y, 1.0], dtype=float)
        self.ms = microsurface
        self.sample_visible_distribution = False
        self.optimize = False

    def to_unit_space(self, wi) -> np.ndarray:
        return normalize(np.asarray(wi, dtype=float) * self.scale)

    def to_transformed_space(self, wi) -> np.ndarray:
        with np.errstate(divide="ignore", invalid="ignore"):
            return normalize(np.asarray(wi, dtype=float) / self.scale)

    def G1(self, wh, wi) -> float:
        return self.ms.G1(self.to_transformed_space(wh), self.to_unit_space(wi))

    def G2(self, wh, wi, wo) -> float:
        return self.ms.G2(self.to_transformed_space(wh), self.to_unit_space(wi), self.to_unit_space(wo))

    def _det(self) -> np.float64:
        with np.errstate(divide="ignore"):
            return np.float64(1.0) / abs(self.scale[0] * self.scale[1])

    def D(self, wh, wi=None) -> float:
        """Normal distribution; with ``wi`` the visible-normal distribution."""
        wh = np.asarray(wh, dtype=float)
        wh_u = self.to_transformed_space(wh)
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            ratio = np.float64(wh_u[2]) / np.float64(wh[2])
            if wi is None:
                return float(self.ms.D(wh_u) * self._det() * ratio**4)
            wi_u = self.to_unit_space(wi)
            return float(self.ms.D(wh_u, wi_u) * self._det() * ratio**3)

    def pdf_wh(self, wh, wi=None) -> float:
        """Density of sampling the half vector ``wh``."""
        wh = np.asarray(wh, dtype=float)
        wh_u = self.to_transformed_space(wh)
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            ratio = np.float64(wh_u[2]) / np.float64(wh[2])
            if wi is None:
                value = self.ms.pdf(wh_u)
            else:
                value = self.ms.pdf(wh_u, self.to_unit_space(wi))
            return float(value * self._det() * ratio**3)

    def sample_D(self, sampler: RandomSampler, wi=None) -> np.ndarray:
        """Sample a half vector, visible from ``wi`` when it is given."""
        if wi is None:
            return self.to_unit_space(self.ms.sample_D(sampler))
        return self.to_unit_space(self.ms.sample_D(sampler, self.to_unit_space(wi)))


class RoughShapeInvariantMicrosurface(ShapeInvariantMicrosurface):
    """Specular conductor microfacet BRDF."""

    def __init__(self, type_name: str, scale_x: float, scale_y: float, microsurface: Microsurface) -> None:
        super().__init__(type_name, scale_x, scale_y, microsurface)
        self.flags = BrdfFlags.ROUGH | BrdfFlags.REFLECTION
        self.eta = as_spectrum(1.0)
        self.kappa = as_spectrum(10000.0)

    def eval(self, wi, wo, sampler: RandomSampler) -> np.ndarray:
        wi = np.asarray(wi, dtype=float)
        wh = normalize(wi + np.asarray(wo, dtype=float))
        d = self.D(wh)
        g = self.G2(wh, wi, wo)
        f = fresnel_conductor(float(np.dot(wh, wi)), self.eta, self.kappa)
        return d * g * f / (4.0 * _clamp(wi[2], 0.0001, 0.9999))

    def eval_optim(self, wi, wo, sampler: RandomSampler) -> np.ndarray:
        """BRDF value divided by its sampling density."""
        with np.errstate(divide="ignore", invalid="ignore"):
            return np.asarray(self.eval(wi, wo, sampler)) / np.float64(self.pdf(wi, wo))

    def sample(self, wi, sampler: RandomSampler) -> BrdfSample:
        wi = np.asarray(wi, dtype=float)
        if self.sample_visible_distribution:
            wh = self.sample_D(sampler, wi)
        else:
            wh = self.sample_D(sampler)
        wo = reflect(-wi, wh)
        return BrdfSample(wo, self.eval_optim(wi, wo, sampler))

    def pdf(self, wi, wo) -> float:
        wi = np.asarray(wi, dtype=float)
        wh = normalize(wi + np.asarray(wo, dtype=float))
        if self.sample_visible_distribution:
            pdf_wh = self.pdf_wh(wh, wi)
        else:
            pdf_wh = self.pdf_wh(wh)
        return pdf_wh / (4.0 * _clamp(np.dot(wh, wi), 0.0001, 0.9999))


class DiffuseShapeInvariantMicrosurface(ShapeInvariantMicrosurface):
    """Microsurface of Lambertian facets, estimated with one sampled normal."""

    def __init__(self, type_name: str, scale_x: float, scale_y: float, microsurface: Microsurface) -> None:
        super().__init__(type_name, scale_x, scale_y, microsurface)
        self.flags = BrdfFlags.DIFFUSE | BrdfFlags.REFLECTION
        self.albedo = as_spectrum(0.5)

    def eval(self, wi, wo, sampler: RandomSampler) -> np.ndarray:
        wi = np.asarray(wi, dtype=float)
        wo = np.asarray(wo, dtype=float)
        if self.sample_visible_distribution:
            wh = self.sample_D(sampler, wi)
            pdf_wh = self.pdf_wh(wh, wi)
        else:
            wh = self.sample_D(sampler)
            pdf_wh = self.pdf_wh(wh)

        d = self.D(wh)
        g = self.G2(wh, wi, wo)

        i_dot_m = _clamp(np.dot(wi, wh), 0.00001, 0.99999)
        o_dot_m = _clamp(np.dot(wo, wh), 0.00001, 0.99999)
        cos_theta_i = _clamp(wi[2], 0.00001, 0.99999)

        with np.errstate(divide="ignore", invalid="ignore"):
            brdf = np.float64(i_dot_m * o_dot_m * d * g) / np.float64(pdf_wh)
        return self.albedo * brdf / cos_theta_i / PI

    def sample(self, wi, sampler: RandomSampler) -> BrdfSample:
        wo = square_to_cosine_hemisphere(sampler.next_float(), sampler.next_float())
        with np.errstate(divide="ignore", invalid="ignore"):
            value = np.asarray(self.eval(wi, wo, sampler)) / np.float64(Brdf.pdf(self, wi, wo))
        return BrdfSample(wo, value)

    def pdf(self, wi, wo) -> float:
        return square_to_cosine_hemisphere_pdf(wo)