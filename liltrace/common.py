"""Vector helpers, sampling warps, rays, random sampling and the serializable base."""

from __future__ import annotations

import bisect
import itertools
import logging
import math
import random
from dataclasses import dataclass, field
from typing import Mapping, Sequence

import numpy as np

PI = 3.14159265359

_LOG = logging.getLogger("liltrace")


def _vec(x: float, y: float, z: float) -> np.ndarray:
    return np.array([x, y, z], dtype=float)


def _safe_pow(base: float, exponent: float) -> float:
    try:
        return math.pow(base, exponent)
    except OverflowError:
        return math.inf


def _safe_gamma(value: float) -> float:
    try:
        return math.gamma(value)
    except OverflowError:
        return math.inf


@dataclass
class Ray:
    """A ray with origin ``o`` and direction ``d``."""

    o: np.ndarray = field(default_factory=lambda: np.zeros(3))
    d: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self) -> None:
        self.o = np.asarray(self.o, dtype=float).copy()
        self.d = np.asarray(self.d, dtype=float).copy()


class RandomSampler:
    """Uniform random numbers in [0, 1)."""

    def __init__(self, seed: int | None = None) -> None:
        self._rng = random.Random(seed)

    def next_float(self) -> float:
        return self._rng.random()

    def seed(self, value: int) -> None:
        self._rng.seed(value)


class Serializable:
    """Base for named, identified scene objects with linked parameters."""

    _counter = itertools.count()

    def __init__(self, type_name: str) -> None:
        self.type = type_name
        self.id = next(Serializable._counter)
        self.params: dict[str, str] = dict(self._link_params())

    def _link_params(self) -> Mapping[str, str]:
        """Map exposed parameter names to attribute names."""
        return {}

    def init(self) -> None:
        """Prepare derived state; the default does nothing."""

    def on_changes(self) -> None:
        self.init()


def normalize(v) -> np.ndarray:
    v = np.asarray(v, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        return v / np.linalg.norm(v)


def reflect(i, n) -> np.ndarray:
    """Reflect incident vector ``i`` about normal ``n``."""
    i = np.asarray(i, dtype=float)
    n = np.asarray(n, dtype=float)
    return i - 2.0 * float(np.dot(n, i)) * n


def linspace(start: float, end: float, size: int, centered: bool = True) -> list[float]:
    """Evenly spaced values; centered spacing puts samples at cell midpoints."""
    if size == 0:
        return []
    if size == 1:
        return [start]
    if centered:
        delta = (end - start) / size
        return [start + delta * i + delta * 0.5 for i in range(size)]
    delta = (end - start) / (size - 1)
    return [start + delta * i for i in range(size)]


def polar_to_card(theta: float, phi: float) -> np.ndarray:
    return _vec(math.sin(theta) * math.cos(phi), math.sin(theta) * math.sin(phi), math.cos(theta))


def square_to_uniform_sphere(u1: float, u2: float) -> np.ndarray:
    z = 1.0 - 2.0 * u1
    r = math.sqrt(max(0.0, 1.0 - z * z))
    ph = 2.0 * PI * u2
    return _vec(r * math.cos(ph), r * math.sin(ph), z)


def square_to_uniform_sphere_pdf() -> float:
    return 1.0 / (4.0 * PI)


def square_to_uniform_hemisphere(u1: float, u2: float) -> np.ndarray:
    z = u1
    r = math.sqrt(max(0.0, 1.0 - z * z))
    ph = 2.0 * PI * u2
    return _vec(r * math.cos(ph), r * math.sin(ph), z)


def square_to_uniform_hemisphere_pdf() -> float:
    return 1.0 / (2.0 * PI)


def square_to_cosine_hemisphere(u1: float, u2: float) -> np.ndarray:
    r = math.sqrt(u1)
    theta = 2.0 * PI * u2
    dx = r * math.cos(theta)
    dy = r * math.sin(theta)
    z = math.sqrt(min(max(1.0 - dx * dx - dy * dy, 0.00001), 1.0))
    if math.isnan(z):
        _LOG.error("square_to_cosine_hemisphere : invalid sample generated")
    return _vec(dx, dy, z)


def square_to_cosine_hemisphere_pdf(w) -> float:
    return min(max(float(w[2]), 0.0), 1.0) / PI


def orthonormal_basis(n) -> tuple[np.ndarray, np.ndarray]:
    """Return tangent and bitangent completing ``n`` to an orthonormal frame."""
    nx, ny, nz = (float(c) for c in n)
    if nz < -0.999999:
        return _vec(0.0, -1.0, 0.0), _vec(-1.0, 0.0, 0.0)
    c1 = 1.0 / (1.0 + nz)
    c2 = -nx * ny * c1
    t = normalize(_vec(1.0 - nx * nx * c1, c2, -nx))
    b = normalize(_vec(c2, 1.0 - ny * ny * c1, -ny))
    return t, b


def build_tbn_from_w(w) -> np.ndarray:
    """3x3 matrix whose columns are tangent, bitangent and ``w``."""
    nx, ny, nz = (float(c) for c in w)
    sign = math.copysign(1.0, nz)
    a = -1.0 / (sign + nz)
    b = nx * ny * a
    tangent = _vec(1.0 + sign * nx * nx * a, sign * b, -sign * nx)
    bitangent = _vec(b, sign + ny * ny * a, -ny)
    return np.column_stack((tangent, bitangent, _vec(nx, ny, nz)))


def fresnel_conductor(cos_theta_i: float, eta, k) -> np.ndarray:
    """Unpolarised Fresnel reflectance of a conductor."""
    eta = np.broadcast_to(np.asarray(eta, dtype=float), (3,))
    k = np.broadcast_to(np.asarray(k, dtype=float), (3,))
    cos2 = cos_theta_i * cos_theta_i
    sin2 = 1.0 - cos2
    sin4 = sin2 * sin2

    temp1 = eta * eta - k * k - sin2
    a2pb2 = np.sqrt(np.maximum(temp1 * temp1 + 4.0 * k * k * eta * eta, 0.00001))
    a = np.sqrt(np.maximum(0.5 * (a2pb2 + temp1), 0.00001))

    term1 = a2pb2 + cos2
    term2 = 2.0 * a * cos_theta_i
    rs2 = (term1 - term2) / (term1 + term2)

    term3 = a2pb2 * cos2 + sin4
    term4 = term2 * sin2
    rp2 = rs2 * (term3 - term4) / (term3 + term4)
    return 0.5 * (rp2 + rs2)


def binary_search(arr: Sequence[float], val: float) -> int:
    """Index of the interval of sorted ``arr`` holding ``val``, clamped to [0, len-2]."""
    first = bisect.bisect_right(arr, val)
    return min(max(first - 1, 0), len(arr) - 2)


def igf(s: float, z: float) -> float:
    """Series approximation of the lower incomplete gamma function."""
    if z < 0.0:
        return 0.0
    sc = 1.0 / s
    sc *= _safe_pow(z, s)
    sc *= math.exp(-z)

    total = 1.0
    nom = 1.0
    denom = 1.0
    for _ in range(200):
        nom *= z
        s += 1
        denom *= s
        total += nom / denom
    return total * sc


def approx_gamma(z: float) -> float:
    """Stirling-type approximation of the gamma function."""
    recip_e = 0.36787944117144232159552377016147
    two_pi = 6.283185307179586476925286766559
    d = 1.0 / (10.0 * z)
    d = 1.0 / ((12 * z) - d)
    d = (d + z) * recip_e
    d = _safe_pow(d, z)
    d *= math.sqrt(two_pi / z)
    return d


def chisqr(dof: int, cv: float) -> float:
    """Chi-square cumulative value for ``dof`` degrees of freedom at ``cv``."""
    if cv < 0 or dof < 1:
        return 0.0
    k = dof * 0.5
    x = cv * 0.5
    if dof == 2:
        return math.exp(-1.0 * x)
    p_value = igf(k, x)
    if math.isnan(p_value) or math.isinf(p_value) or p_value <= 1e-8:
        return 1e-14
    p_value /= _safe_gamma(k)
    return 1.0 - p_value