"""Light sources: directional, environment map and spherical area lights."""

from __future__ import annotations

import abc
import enum
import math
from dataclasses import dataclass
from typing import Mapping

import numpy as np

from liltrace.common import PI, RandomSampler, Serializable, build_tbn_from_w, linspace, normalize
from liltrace.geometry import INVALID_GEOMETRY_ID, Sphere
from liltrace.texture import Texture


class LightFlags(enum.IntFlag):
    """Properties a light can have."""

    DIRAC = 1 << 0
    INFINITE = 1 << 1


@dataclass
class LightSample:
    """A direction from the light toward the shaded point, with its emission and density."""

    direction: np.ndarray
    emission: np.ndarray
    pdf: float
    expected_distance_to_intersection: float


def _spectrum(value) -> np.ndarray:
    return np.array(np.broadcast_to(np.asarray(value, dtype=float), (3,)), dtype=float)


class Light(Serializable, abc.ABC):
    """Base for light sources."""

    def __init__(self, type_name: str, flags: LightFlags = LightFlags(0)) -> None:
        super().__init__(type_name)
        self.flags = flags

    @abc.abstractmethod
    def sample(self, pos, sampler: RandomSampler) -> LightSample:
        """Sample a direction of incoming light at position ``pos``."""

    @abc.abstractmethod
    def eval(self, direction) -> np.ndarray:
        """Emission arriving from ``direction``."""

    @abc.abstractmethod
    def pdf(self, p, ld) -> float:
        """Density of sampling light direction ``ld`` (toward the scene) at ``p``."""

    def geometry_id(self) -> int:
        return INVALID_GEOMETRY_ID

    def is_dirac(self) -> bool:
        return bool(self.flags & LightFlags.DIRAC)

    def is_infinite(self) -> bool:
        return bool(self.flags & LightFlags.INFINITE)


class DirectionnalLight(Light):
    """Light arriving from a single direction at infinite distance."""

    def __init__(self, dir=(1.0, 0.0, 0.0), intensity: float = 0.5) -> None:
        super().__init__("DirectionnalLight", LightFlags.DIRAC | LightFlags.INFINITE)
        self.dir = np.asarray(dir, dtype=float).copy()
        self.intensity = intensity

    def _link_params(self) -> Mapping[str, str]:
        return {"dir": "dir", "intensity": "intensity"}

    def init(self) -> None:
        self.dir = normalize(self.dir)

    def sample(self, pos, sampler: RandomSampler) -> LightSample:
        return LightSample(self.dir.copy(), _spectrum(self.intensity), 1.0, math.inf)

    def eval(self, direction) -> np.ndarray:
        return _spectrum(self.intensity)

    def pdf(self, p, ld) -> float:
        return 0.0


def _direction_to_uv(direction) -> tuple[float, float]:
    x, y, z = (float(c) for c in direction)
    phi = math.atan2(z, x)
    if phi < 0.0:
        phi += 2.0 * PI
    return phi / (2.0 * PI), math.acos(min(max(y, -1.0), 1.0)) / PI


class EnvironmentLight(Light):
    """Light at infinity given by a latitude-longitude RGB map, importance sampled."""

    def __init__(self, envmap: Texture | None = None, intensity: float = 1.0) -> None:
        super().__init__("EnvironmentLight", LightFlags.INFINITE)
        self.envmap = envmap if envmap is not None else Texture(1, 1, channels=3)
        self.intensity = intensity
        self.density = Texture(1, 1)
        self.cumulative_density = Texture(1, 1)
        self.inv_cumulative_density = Texture(1, 1, dtype=np.int64)
        self.c: list[float] = []
        self.dtheta = 0.0
        self.dphi = 0.0

    def _link_params(self) -> Mapping[str, str]:
        return {"texture": "envmap", "intensity": "intensity"}

    def init(self) -> None:
        self.dtheta = PI / self.envmap.h
        self.dphi = 2.0 * PI / self.envmap.w
        self.compute_density()
        self.c = [0.0, *self.cumulative_density.data.tolist()]

    def compute_density(self) -> None:
        """Build the per-texel density, its cumulative sum and the inverse lookup table."""
        w, h = self.envmap.w, self.envmap.h
        n = w * h
        rgb = np.asarray(self.envmap.data, dtype=float).reshape(h, w, 3)
        sin_theta = np.sin(PI * (np.arange(h) + 0.5) / h)
        density = (rgb.sum(axis=2) * 0.333333 * sin_theta[:, None]).ravel()
        cumulative = np.cumsum(density)
        total = cumulative[-1]
        if not total > 0.0:
            raise ValueError("environment map carries no energy to sample")

        self.density = Texture(w, h)
        self.density.data[:] = density / total
        self.cumulative_density = Texture(w, h)
        self.cumulative_density.data[:] = cumulative / total

        u = np.asarray(linspace(0.0, 1.0, n, True), dtype=float)
        first = np.searchsorted(self.cumulative_density.data, u, side="right")
        self.inv_cumulative_density = Texture(w, h, dtype=np.int64)
        self.inv_cumulative_density.data[:] = np.clip(first - 1, 0, max(n - 2, 0))

    def sample(self, pos, sampler: RandomSampler) -> LightSample:
        w, h = self.envmap.w, self.envmap.h
        u = sampler.next_float()
        texel = int(self.inv_cumulative_density.data[int(u * w * h)])
        x, y = texel % w, texel // w

        theta = PI * (y + 0.5) / h
        phi = 2.0 * PI * (x + 0.5) / w
        solid_angle = math.sin(theta) * self.dphi * self.dtheta

        theta += self.dtheta * (sampler.next_float() - 0.5)
        phi += self.dphi * (sampler.next_float() - 0.5)

        direction = -np.array(
            [math.sin(theta) * math.cos(phi), math.cos(theta), math.sin(theta) * math.sin(phi)]
        )
        pdf = self.density.get(x, y) / solid_angle
        return LightSample(direction, self.eval(-direction), pdf, math.inf)

    def eval(self, direction) -> np.ndarray:
        """Radiance of the map seen along ``direction`` (pointing toward the map)."""
        u, v = _direction_to_uv(direction)
        return np.asarray(self.envmap.eval(u, v), dtype=float) * self.intensity

    def pdf(self, p, ld) -> float:
        direction = -np.asarray(ld, dtype=float)
        u, v = _direction_to_uv(direction)
        y = float(direction[1])
        sin_theta = math.sqrt(min(max(1.0 - y * y, 0.000001), 1.0))
        return self.density.eval(u, v) / (sin_theta * self.dphi * self.dtheta)


class SphereLight(Light):
    """Area light on an emissive sphere, sampled over its subtended cone."""

    def __init__(self, sphere: Sphere | None = None) -> None:
        super().__init__("SphereLight", LightFlags(0))
        self.sphere = sphere

    def _require_sphere(self) -> Sphere:
        if self.sphere is None:
            raise ValueError("sphere light has no sphere attached")
        return self.sphere

    def _emission(self) -> np.ndarray:
        sphere = self._require_sphere()
        if sphere.brdf is None:
            raise ValueError("sphere light has no emissive BRDF")
        return np.asarray(sphere.brdf.emission(), dtype=float)

    def sample(self, pos, sampler: RandomSampler) -> LightSample:
        sphere = self._require_sphere()
        pos = np.asarray(pos, dtype=float)
        direction = sphere.pos - pos
        distance = float(np.linalg.norm(direction))
        if distance <= sphere.rad:
            raise ValueError("cannot sample a sphere light from inside the sphere")
        direction = direction / distance

        dist_sqr = distance * distance
        rad_sqr = sphere.rad * sphere.rad
        cos_theta_max = math.sqrt(1.0 - rad_sqr / dist_sqr)
        solid_angle = 2.0 * PI * (1.0 - cos_theta_max)

        u = sampler.next_float()
        cos_theta = (1.0 - u) + u * cos_theta_max
        cos_theta_sqr = cos_theta * cos_theta
        sin_theta = math.sqrt(max(1.0 - cos_theta_sqr, 0.0))
        phi = 2.0 * PI * sampler.next_float()
        cone_sample = np.array([math.cos(phi) * sin_theta, math.sin(phi) * sin_theta, cos_theta])

        uvw = build_tbn_from_w(direction)
        light_dir = -normalize(uvw @ cone_sample)
        expected = distance * cos_theta - math.sqrt(max(rad_sqr - dist_sqr * (1.0 - cos_theta_sqr), 0.0))
        return LightSample(light_dir, self._emission(), 1.0 / solid_angle, expected)

    def eval(self, direction) -> np.ndarray:
        return self._emission()

    def pdf(self, p, ld) -> float:
        sphere = self._require_sphere()
        dist = float(np.linalg.norm(sphere.pos - np.asarray(p, dtype=float)))
        cos_theta_max = math.sqrt(max(dist * dist - sphere.rad * sphere.rad, 0.0)) / dist
        return 1.0 / (2.0 * PI * (1.0 - cos_theta_max))

    def geometry_id(self) -> int:
        return self._require_sphere().rtc_id