"""Micrograin microsurface: a layer of spherical grains over a base material."""

from __future__ import annotations

import functools
import math
from dataclasses import dataclass
from typing import Mapping

import numpy as np

from liltrace.brdf import Brdf, BrdfSample, Diffuse
from liltrace.common import PI, RandomSampler, normalize, square_to_cosine_hemisphere
from liltrace.shape_invariant import (
    DiffuseShapeInvariantMicrosurface,
    RoughShapeInvariantMicrosurface,
)

_LO = 0.00001
_HI = 0.99999


def _quiet(func):
    """Run ``func`` with IEEE semantics: divisions by zero give inf or nan."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        with np.errstate(all="ignore"):
            return func(*args, **kwargs)

    return wrapper


def _clamp(x, lo: float, hi: float) -> np.float64:
    """Clamp that lets nan through."""
    return np.float64(np.clip(np.float64(x), lo, hi))


def _v3(v) -> np.ndarray:
    return np.asarray(v, dtype=float)


@_quiet
def _normalize2(v) -> np.ndarray:
    v = np.asarray(v, dtype=float)
    return v / np.linalg.norm(v)


@_quiet
def _shadow_intersection_point(wh_u, wi_u, wo_u, t, b) -> np.ndarray:
    a0 = -t[2] / b[2]
    a1 = np.float64(wh_u[2]) / b[2]
    a0_sqr = a0 * a0

    d = np.dot(b, wo_u)
    sy = 1.0 / np.sqrt(1.0 - _clamp(d * d, _LO, _HI))
    sy_sqr = sy * sy

    x = (-a0 * a1 / sy_sqr - np.sqrt((a0_sqr - a1 * a1) / sy_sqr + 1.0)) / (a0_sqr / sy_sqr + 1.0)
    y = a0 * x + a1
    p = t * x + b * y
    return np.array([p[0], p[1]], dtype=float)


@_quiet
def _shadow_intersection_point_0(wi_u, wo_u, t, b) -> np.ndarray:
    a0 = -t[2] / b[2]
    a0_sqr = a0 * a0

    d = np.dot(b, wo_u)
    sy = 1.0 / np.sqrt(1.0 - _clamp(d * d, _LO, _HI))
    sy_sqr = sy * sy

    x = -np.sqrt(a0_sqr / sy_sqr + 1.0) / (a0_sqr / sy_sqr + 1.0)
    y = a0 * x
    p = t * x + b * y
    return np.array([p[0], p[1]], dtype=float)


def _area_triangle(a, b, c) -> np.float64:
    area = a[0] * (b[1] - c[1]) + b[0] * (c[1] - a[1]) + c[0] * (a[1] - b[1])
    return np.float64(0.5 * abs(area))


@_quiet
def _area_sector(p1, p2, rad) -> np.float64:
    p1 = np.asarray(p1, dtype=float)
    p2 = np.asarray(p2, dtype=float)
    cos_theta = _clamp(np.dot(p1, p2) / (np.linalg.norm(p1) * np.linalg.norm(p2)), -_HI, _HI)
    cross = abs(p1[0] * p2[1] - p2[0] * p1[1])
    return np.float64((np.arccos(cos_theta) * rad * rad - cross) * 0.5)


@_quiet
def _area_sector_i(p, p_i, cos_theta_u, wi_u) -> np.float64:
    direction = _normalize2([wi_u[0], wi_u[1]])

    cos_theta_i = np.float64(max(float(wi_u[2]), 0.0001))
    tan_theta_i = np.sqrt(1.0 - cos_theta_i * cos_theta_i) / cos_theta_i
    shift = direction * tan_theta_i * cos_theta_u
    centered_p = np.asarray(p, dtype=float) - shift
    centered_pi = np.asarray(p_i, dtype=float) - shift

    # Columns: direction / cos_theta_i and its perpendicular.
    a, b = direction[0] / cos_theta_i, -direction[1]
    c, d = direction[1] / cos_theta_i, direction[0]
    det = a * d - b * c
    inv = np.array([[d, -b], [-c, a]]) / det

    return _area_sector(inv @ centered_p, inv @ centered_pi, 1.0) * det


@_quiet
def _silhouette_points(wh_u, wi_u, wo_u) -> tuple[np.ndarray, np.ndarray]:
    cos_th_i_sqr = np.float64(wi_u[2]) ** 2
    sin_th_i_sqr = 1.0 - cos_th_i_sqr
    cos_th_m_sqr = np.float64(wh_u[2]) ** 2
    tan_th_i = np.sqrt(sin_th_i_sqr / cos_th_i_sqr)
    sign = np.sign(wi_u[0] * wo_u[1] - wo_u[0] * wi_u[1])

    x_qi = np.sqrt(1.0 - cos_th_m_sqr / sin_th_i_sqr) * sign
    y_qi = -np.float64(wh_u[2]) / tan_th_i

    proj = _normalize2([wi_u[0], wi_u[1]])
    sin_ph_i, cos_ph_i = proj[1], proj[0]
    plus = np.array([x_qi * sin_ph_i + y_qi * cos_ph_i, -x_qi * cos_ph_i + y_qi * sin_ph_i])
    minus = np.array([-x_qi * sin_ph_i + y_qi * cos_ph_i, x_qi * cos_ph_i + y_qi * sin_ph_i])
    return plus, minus


def _silhouette_points_0(wi_u, wo_u) -> tuple[np.ndarray, np.ndarray]:
    x_qi = np.sign(wi_u[0] * wo_u[1] - wo_u[0] * wi_u[1])
    proj = _normalize2([wi_u[0], wi_u[1]])
    sin_ph_i, cos_ph_i = proj[1], proj[0]
    plus = np.array([x_qi * sin_ph_i, -x_qi * cos_ph_i])
    minus = np.array([-x_qi * sin_ph_i, x_qi * cos_ph_i])
    return plus, minus


def _is_left(a, b, c) -> bool:
    return bool((b[0] - a[0]) * (c[1] - a[1]) - (b[1] - a[1]) * (c[0] - a[0]) > 0)


@dataclass
class MicrograinMicrosurface:
    """Statistics of randomly placed grains with filling factor ``tau_0``."""

    tau_0: float = 0.1
    use_smith: bool = False
    height_and_direction: bool = True
    sig_asia_2023: bool = False

    @_quiet
    def _rho(self) -> np.float64:
        return -np.log(np.float64(1.0) - self.tau_0) / PI

    @_quiet
    def one_to_many(self, sigma_) -> float:
        """Probability that no grain covers an area ``sigma_``."""
        return float(np.exp(-self._rho() * np.float64(sigma_)))

    def tau_v(self, wi_u) -> float:
        """Apparent filling factor seen from ``wi_u``."""
        return 1.0 - self.one_to_many(self.sigma(wi_u))

    @_quiet
    def D(self, wh_u, wi_u=None) -> float:
        """Normal distribution; the visible variant is not available and gives 0."""
        if wi_u is not None:
            return 0.0
        return float(self._rho() * self.one_to_many(self.sigma_base(wh_u)) / np.float64(self.tau_0))

    def pdf(self, wh_u, wi_u=None) -> float:
        if wi_u is not None:
            return self.D(wh_u, wi_u)
        return self.D(wh_u) * float(wh_u[2])

    @_quiet
    def sample_D(self, sampler: RandomSampler, wi_u=None) -> np.ndarray:
        """Sample a grain normal; visible sampling is not available and gives 0."""
        if wi_u is not None:
            return np.zeros(3)
        u = sampler.next_float()
        v = np.log(1.0 - np.float64(u) * self.tau_0) / np.log(np.float64(1.0) - self.tau_0)
        return square_to_cosine_hemisphere(float(v), sampler.next_float())

    @_quiet
    def lambda_(self, wi_u) -> float:
        """Smith lambda of the grain layer, as a seven-term series."""
        pg = -np.log(np.float64(1.0) - self.tau_0)
        exp_pg_minus_one = np.exp(pg) - 1.0

        cos_theta = float(_clamp(wi_u[2], _LO, _HI))
        mu = cos_theta / math.sqrt(1.0 - cos_theta * cos_theta)
        mu2 = mu * mu
        mu4 = mu2 * mu2
        mu6 = mu4 * mu2
        mu8 = mu6 * mu2
        mu10 = mu8 * mu2
        mu12 = mu10 * mu2

        b2m = 1.0 + mu2
        s = math.sqrt(b2m)

        f0 = pg * (-mu + s) / (2 * mu)
        f1 = pg**2 * (1 + 2 * mu * (mu - s)) / (8 * mu * s)
        f2 = pg**3 * (3 + 12 * mu2 + 8 * mu4 - 8 * mu * b2m**1.5) / (96 * mu * b2m**1.5)
        f3 = pg**4 * (
            5 + 30 * mu2 + 40 * mu4 + 16 * mu6 - 16 * mu * b2m**2.5
        ) / (768 * mu * b2m**2.5)
        f4 = pg**5 * (
            35 + 280 * mu2 + 560 * mu4 + 448 * mu6 + 128 * mu8 - 128 * mu * b2m**3.5
        ) / (30720 * mu * b2m**3.5)
        f5 = pg**6 * (
            63 + 630 * mu2 + 1680 * mu4 + 2016 * mu6 + 1152 * mu8 + 256 * mu10
            - 256 * mu * b2m**4.5
        ) / (368640 * mu * b2m**4.5)
        f6 = pg**7 * (
            231 + 2772 * mu2 + 9240 * mu4 + 14784 * mu6 + 12672 * mu8 + 5632 * mu10
            + 1024 * mu12 - 1024 * mu * b2m**5.5
        ) / (10321920 * mu * b2m**5.5)

        return float((f0 + f1 + f2 + f3 + f4 + f5 + f6) / exp_pg_minus_one)

    def sigma(self, wi_u) -> float:
        """Projected area of a grain's shadow volume seen from ``wi_u``."""
        return PI * 0.5 * (1.0 + 1.0 / float(_clamp(wi_u[2], _LO, _HI)))

    @_quiet
    def w_plus(self, wi_u, wo_u) -> float:
        """Weight of the grain layer in the 2023 model."""
        s = PI * 0.5 * (1.0 / _clamp(wi_u[2], _LO, _HI) + 1.0 / _clamp(wo_u[2], _LO, _HI))
        return float(1.0 - np.exp(np.log(np.float64(1.0) - self.tau_0) / PI * s))

    def sigma_base(self, wh_u) -> float:
        return PI * (1.0 - float(wh_u[2]) ** 2)

    @_quiet
    def sigma_shadow(self, wh_u, wi_u) -> float:
        """Shadowed area for normal ``wh_u`` seen from ``wi_u``."""
        wiz = np.float64(wi_u[2])
        whz = np.float64(wh_u[2])
        if wiz >= _HI:
            return 0.0

        cos_i2 = wiz * wiz
        sin_i2 = 1.0 - cos_i2
        if whz >= np.sqrt(sin_i2):
            return 0.0

        tan_i2 = sin_i2 / cos_i2
        cos_m2 = whz * whz
        sin_m2 = 1.0 - cos_m2
        tan_m2 = sin_m2 / cos_m2

        cos_phi_q = -1.0 / np.sqrt(tan_i2 * tan_m2)

        q_x = np.sqrt(sin_m2) * cos_phi_q
        q_y = np.sqrt(sin_m2 * (1.0 - cos_phi_q * cos_phi_q))
        e_x = np.sqrt(tan_i2) * whz
        sigma_e = np.arccos(np.clip(-(q_x - e_x) * wiz, 0.0, 1.0)) / wiz
        sigma_t = abs(e_x * q_y)
        sigma_c = (PI - np.arccos(cos_phi_q)) * sin_m2

        return float(max(sigma_e - sigma_t - sigma_c, 0.0))

    def sigma_shadow_0(self, wi_u) -> float:
        """Shadowed area at the grain equator (sigma minus sigma_base)."""
        if float(wi_u[2]) >= _HI:
            return 0.0
        return PI * 0.5 * (1.0 / float(_clamp(wi_u[2], _LO, _HI)) - 1.0)

    @_quiet
    def sigma_shadow_inter(self, wh_u, wi_u, wo_u, p, pi, po) -> float:
        """Area shared by the shadows toward ``wi_u`` and ``wo_u``."""
        whz = np.float64(wh_u[2])
        s_t = _area_triangle(p, pi, po)
        s_c = _area_sector(pi, po, np.sqrt(1.0 - whz * whz))
        s_i = _area_sector_i(p, pi, whz, wi_u)
        s_o = _area_sector_i(p, po, whz, wo_u)
        return float(s_t + s_i + s_o - s_c)

    @_quiet
    def sigma_shadow_inter_0(self, wi_u, wo_u, p, pi, po) -> float:
        """Shared shadow area at the grain equator."""
        s_t = _area_triangle(p, pi, po)
        s_c = _area_sector(pi, po, 1.0)
        s_i = _area_sector_i(p, pi, 0.0, wi_u)
        s_o = _area_sector_i(p, po, 0.0, wo_u)
        return float(s_t + s_i + s_o - s_c)

    def G1(self, wh_u, wi_u) -> float:
        if self.use_smith or self.sig_asia_2023:
            return 1.0 / (1.0 + self.lambda_(wi_u))
        return self.one_to_many(self.sigma_shadow(wh_u, wi_u))

    def G1_0(self, wi_u) -> float:
        return self.one_to_many(self.sigma_shadow_0(wi_u))

    @_quiet
    def G2(self, wh_u, wi_u, wo_u) -> float:
        """Masking-shadowing with overlapping shadows accounted for."""
        if self.use_smith or self.sig_asia_2023:
            return self.G1(wh_u, wi_u) * self.G1(wh_u, wo_u)

        wh_u, wi_u, wo_u = _v3(wh_u), _v3(wi_u), _v3(wo_u)
        s_i = self.sigma_shadow(wh_u, wi_u)
        s_o = self.sigma_shadow(wh_u, wo_u)
        s_shadow = s_i + s_o

        if self.height_and_direction and s_i > 0.0 and s_o > 0.0:
            b = normalize(wi_u + wo_u)
            t = normalize(np.cross(wi_u, wo_u))
            t = t * np.sign(-t[2])
            n = normalize(np.cross(t, b))

            pi_plus, pi_minus = _silhouette_points(wh_u, wi_u, wo_u)
            po_plus, po_minus = _silhouette_points(wh_u, wo_u, wi_u)

            p1 = np.array([-n[2] / n[0] * wh_u[2], 0.0])
            p2 = p1 + np.array([-n[1] / n[0], 1.0])

            il_pi_p = _is_left(p1, p2, pi_plus)
            il_pi_m = _is_left(p1, p2, pi_minus)
            il_po_p = _is_left(p1, p2, po_plus)
            il_po_m = _is_left(p1, p2, po_minus)

            same_side_pi = il_pi_p == il_pi_m
            same_side_po = il_po_p == il_po_m
            same_side_pio = il_pi_p == il_po_m
            full = same_side_pi and same_side_po and same_side_pio
            disjoint = same_side_pi and same_side_po and not same_side_pio

            if not disjoint:
                if full:
                    s_shadow -= min(s_i, s_o)
                else:
                    p = _shadow_intersection_point(wh_u, wi_u, wo_u, t, b)
                    s_shadow -= self.sigma_shadow_inter(wh_u, wi_u, wo_u, p, pi_plus, po_plus)

        return self.one_to_many(s_shadow)

    @_quiet
    def G2_0(self, wi_u, wo_u) -> float:
        """Visibility of the base below the grains from both directions."""
        if self.use_smith or self.sig_asia_2023:
            return self.G1_0(wi_u) * self.G1_0(wo_u)

        wi_u, wo_u = _v3(wi_u), _v3(wo_u)
        s_i = self.sigma_shadow_0(wi_u)
        s_o = self.sigma_shadow_0(wo_u)
        s_shadow = s_i + s_o

        if self.height_and_direction and s_i > 0.0 and s_o > 0.0:
            b = normalize(wi_u + wo_u)
            t = normalize(np.cross(wi_u, wo_u))
            t = t * np.sign(-t[2])

            pi_plus, _ = _silhouette_points_0(wi_u, wo_u)
            po_plus, _ = _silhouette_points_0(wo_u, wi_u)

            cos_theta_d = np.dot(_normalize2(wi_u[:2]), _normalize2(wo_u[:2]))
            if cos_theta_d > _HI:
                s_shadow -= min(s_i, s_o)
            elif not cos_theta_d < -_HI:
                p = _shadow_intersection_point_0(wi_u, wo_u, t, b)
                s_shadow -= self.sigma_shadow_inter_0(wi_u, wo_u, p, pi_plus, po_plus)

        return self.one_to_many(s_shadow)


def _base_weight(ms: MicrograinMicrosurface, wi_u) -> float:
    porosity = 1.0 - ms.tau_v(wi_u)
    return porosity / (ms.tau_0 + porosity)


class RoughMicrograin(RoughShapeInvariantMicrosurface):
    """Conductor grains over a base BRDF."""

    def __init__(self, scale_x: float = 0.1, scale_y: float = 0.1) -> None:
        super().__init__("RoughMicrograin", scale_x, scale_y, MicrograinMicrosurface())
        self.base: Brdf = Diffuse(0.5)

    def _link_params(self) -> Mapping[str, str]:
        return {
            "rough_x": "scale[0]",
            "rough_y": "scale[1]",
            "tau": "ms.tau_0",
            "eta": "eta",
            "kappa": "kappa",
            "height_and_direction": "ms.height_and_direction",
            "use_smith": "ms.use_smith",
            "sig_asia_2023": "ms.sig_asia_2023",
            "base": "base",
        }

    def eval(self, wi, wo, sampler: RandomSampler) -> np.ndarray:
        surf_brdf = np.asarray(super().eval(wi, wo, sampler), dtype=float)
        base_brdf = np.asarray(self.base.eval(wi, wo, sampler), dtype=float)
        wi_u = self.to_unit_space(wi)
        wo_u = self.to_unit_space(wo)

        if self.ms.sig_asia_2023:
            wei = self.ms.w_plus(wi_u, wo_u)
            return wei * surf_brdf + (1.0 - wei) * base_brdf

        visibility = self.ms.G2_0(wi_u, wo_u)
        tau = self.ms.tau_0
        return tau * surf_brdf + (1.0 - tau) * base_brdf * visibility

    def sample(self, wi, sampler: RandomSampler) -> BrdfSample:
        base_weight = _base_weight(self.ms, self.to_unit_space(wi))
        if sampler.next_float() < base_weight:
            bs = self.base.sample(wi, sampler)
        else:
            bs = super().sample(wi, sampler)

        pdf_ = (1.0 - base_weight) * super().pdf(wi, bs.wo) + base_weight * self.base.pdf(wi, bs.wo)
        with np.errstate(divide="ignore", invalid="ignore"):
            value = np.asarray(self.eval(wi, bs.wo, sampler), dtype=float) / np.float64(pdf_)
        return BrdfSample(bs.wo, value, bs.flags)

    def pdf(self, wi, wo) -> float:
        base_weight = _base_weight(self.ms, self.to_unit_space(wi))
        return (1.0 - base_weight) * super().pdf(wi, wo) + base_weight * self.base.pdf(wi, wo)


class DiffuseMicrograin(DiffuseShapeInvariantMicrosurface):
    """Lambertian grains over a base BRDF."""

    def __init__(self, scale_x: float = 0.1, scale_y: float = 0.1) -> None:
        super().__init__("DiffuseMicrograin", scale_x, scale_y, MicrograinMicrosurface())
        self.base: Brdf = Diffuse(0.5)

    def _link_params(self) -> Mapping[str, str]:
        return {
            "rough_x": "scale[0]",
            "rough_y": "scale[1]",
            "tau": "ms.tau_0",
            "albedo": "albedo",
            "use_smith": "ms.use_smith",
            "base": "base",
        }

    def eval(self, wi, wo, sampler: RandomSampler) -> np.ndarray:
        surf_brdf = np.asarray(super().eval(wi, wo, sampler), dtype=float)
        base_brdf = np.asarray(self.base.eval(wi, wo, sampler), dtype=float)
        visibility = self.ms.G2_0(self.to_unit_space(wi), self.to_unit_space(wo))
        tau = self.ms.tau_0
        return tau * surf_brdf + (1.0 - tau) * base_brdf * visibility

    def sample(self, wi, sampler: RandomSampler) -> BrdfSample:
        base_weight = _base_weight(self.ms, self.to_unit_space(wi))
        if sampler.next_float() < base_weight:
            bs = self.base.sample(wi, sampler)
        else:
            bs = super().sample(wi, sampler)

        pdf_ = (1.0 - base_weight) * super().pdf(wi, bs.wo) + base_weight * self.base.pdf(wi, bs.wo)
        with np.errstate(divide="ignore", invalid="ignore"):
            value = np.asarray(self.eval(wi, bs.wo, sampler), dtype=float) / np.float64(pdf_)
        return BrdfSample(bs.wo, value, bs.flags)

    def pdf(self, wi, wo) -> float:
        base_weight = _base_weight(self.ms, self.to_unit_space(wi))
        return (1.0 - base_weight) * super().pdf(wi, wo) + base_weight * self.base.pdf(wi, wo)