"""Base BRDF interface and the simple analytic BRDFs."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Mapping

import numpy as np

from liltrace.common import (
    PI,
    RandomSampler,
    Serializable,
    square_to_cosine_hemisphere,
    square_to_cosine_hemisphere_pdf,
)


def as_spectrum(value) -> np.ndarray:
    """Broadcast a scalar or RGB triple to a fresh float array of length 3."""
    return np.array(np.broadcast_to(np.asarray(value, dtype=float), (3,)), dtype=float)


class BrdfFlags(enum.IntFlag):
    """Properties a BRDF can have."""

    ROUGH = 1 << 0
    SPECULAR = 1 << 1
    DIFFUSE = 1 << 2
    REFLECTION = 1 << 3
    TRANSMISSION = 1 << 4
    EMISSIVE = 1 << 5


@dataclass
class BrdfSample:
    """A sampled outgoing direction and its weight (brdf / pdf)."""

    wo: np.ndarray
    value: np.ndarray
    flags: BrdfFlags = BrdfFlags(0)


class Brdf(Serializable):
    """Base BRDF: black, sampled with a cosine-weighted hemisphere."""

    def __init__(self, type_name: str) -> None:
        super().__init__(type_name)
        self.flags = BrdfFlags(0)

    def eval(self, wi, wo, sampler: RandomSampler) -> np.ndarray:
        """BRDF times the outgoing cosine."""
        return np.zeros(3)

    def sample(self, wi, sampler: RandomSampler) -> BrdfSample:
        wo = square_to_cosine_hemisphere(sampler.next_float(), sampler.next_float())
        with np.errstate(divide="ignore", invalid="ignore"):
            value = np.asarray(self.eval(wi, wo, sampler), dtype=float) / np.float64(
                self.pdf(wi, wo)
            )
        return BrdfSample(wo, value)

    def pdf(self, wi, wo) -> float:
        """Density of sampling ``wo`` given ``wi``."""
        return square_to_cosine_hemisphere_pdf(wo)

    def emission(self) -> np.ndarray:
        return np.zeros(3)

    def is_emissive(self) -> bool:
        return bool(self.flags & BrdfFlags.EMISSIVE)


class Diffuse(Brdf):
    """Lambertian reflector."""

    def __init__(self, albedo=0.5) -> None:
        super().__init__("Diffuse")
        self.albedo = as_spectrum(albedo)
        self.flags = BrdfFlags.DIFFUSE | BrdfFlags.REFLECTION

    def _link_params(self) -> Mapping[str, str]:
        return {"albedo": "albedo"}

    def eval(self, wi, wo, sampler: RandomSampler) -> np.ndarray:
        cos_o = min(max(float(wo[2]), 0.0), 1.0)
        return self.albedo / PI * cos_o

    def sample(self, wi, sampler: RandomSampler) -> BrdfSample:
        wo = square_to_cosine_hemisphere(sampler.next_float(), sampler.next_float())
        return BrdfSample(wo, self.albedo.copy())

    def pdf(self, wi, wo) -> float:
        return square_to_cosine_hemisphere_pdf(wo)


class Emissive(Brdf):
    """Light-emitting surface."""

    def __init__(self, intensity=1.0) -> None:
        super().__init__("Emissive")
        self.intensity = as_spectrum(intensity)
        self.flags = BrdfFlags.EMISSIVE

    def _link_params(self) -> Mapping[str, str]:
        return {"intensity": "intensity"}

    def emission(self) -> np.ndarray:
        return self.intensity.copy()


class TestBrdf(Brdf):
    """BRDF with one parameter of each kind, returning the outgoing cosine."""

    __test__ = False

    def __init__(self) -> None:
        super().__init__("TestBrdf")
        self.v1 = 0.5
        self.v2 = as_spectrum(0.5)
        self.v3: list[float] = [2.0, 1.0, 3.0, 4.0, 9.0]

    def _link_params(self) -> Mapping[str, str]:
        return {"float": "v1", "vec3": "v2", "array": "v3"}

    def eval(self, wi, wo, sampler: RandomSampler) -> np.ndarray:
        return as_spectrum(float(wo[2]))


class Mix(Brdf):
    """Weighted blend of two BRDFs."""

    def __init__(self, brdf1: Brdf | None = None, brdf2: Brdf | None = None, weight: float = 0.5) -> None:
        super().__init__("Mix")
        self.albedo = as_spectrum(0.5)
        self.brdf1 = brdf1 if brdf1 is not None else Diffuse((0.1, 0.5, 0.9))
        self.brdf2 = brdf2 if brdf2 is not None else Diffuse((0.9, 0.5, 0.1))
        self.weight = weight

    def _link_params(self) -> Mapping[str, str]:
        return {"brdf1": "brdf1", "brdf2": "brdf2", "weight": "weight"}

    def init(self) -> None:
        self.flags = self.brdf1.flags | self.brdf2.flags

    def eval(self, wi, wo, sampler: RandomSampler) -> np.ndarray:
        return self.weight * np.asarray(self.brdf1.eval(wi, wo, sampler)) + (
            1.0 - self.weight
        ) * np.asarray(self.brdf2.eval(wi, wo, sampler))

    def sample(self, wi, sampler: RandomSampler) -> BrdfSample:
        if sampler.next_float() < self.weight:
            return self.brdf1.sample(wi, sampler)
        return self.brdf2.sample(wi, sampler)

    def pdf(self, wi, wo) -> float:
        return self.weight * self.brdf1.pdf(wi, wo) + (1.0 - self.weight) * self.brdf2.pdf(wi, wo)