"""Cameras that turn image-plane coordinates into rays."""

from __future__ import annotations

import abc
import math
from typing import Mapping

import numpy as np

from liltrace.common import PI, Ray, Serializable, normalize


def _look_at(eye: np.ndarray, center: np.ndarray, up: np.ndarray) -> np.ndarray:
    """Right-handed view matrix."""
    f = normalize(center - eye)
    s = normalize(np.cross(f, up))
    u = np.cross(s, f)
    view = np.identity(4)
    view[0, :3] = s
    view[1, :3] = u
    view[2, :3] = -f
    view[0, 3] = -np.dot(s, eye)
    view[1, 3] = -np.dot(u, eye)
    view[2, 3] = np.dot(f, eye)
    return view


def _perspective(fovy: float, aspect: float, near: float, far: float) -> np.ndarray:
    """Right-handed projection with clip depth in [-1, 1]."""
    tan_half = math.tan(fovy / 2.0)
    proj = np.zeros((4, 4))
    proj[0, 0] = 1.0 / (aspect * tan_half)
    proj[1, 1] = 1.0 / tan_half
    proj[2, 2] = -(far + near) / (far - near)
    proj[2, 3] = -(2.0 * far * near) / (far - near)
    proj[3, 2] = -1.0
    return proj


class Camera(Serializable, abc.ABC):
    """A source of primary rays."""

    @abc.abstractmethod
    def generate_ray(self, u: float, v: float) -> Ray:
        """Ray through image-plane point ``(u, v)``, both in [-1, 1]."""


class PerspectiveCamera(Camera):
    """Pinhole camera at ``pos`` looking at ``center``."""

    def __init__(self, pos=(-1.0, 0.0, 0.0), center=(0.0, 0.0, 0.0), fov: float = 40.0, aspect: float = 1.0) -> None:
        super().__init__("PerspectiveCamera")
        self.pos = np.asarray(pos, dtype=float).copy()
        self.center = np.asarray(center, dtype=float).copy()
        self.fov = fov
        self.aspect = aspect
        self.init()

    def _link_params(self) -> Mapping[str, str]:
        return {"pos": "pos", "center": "center", "aspect": "aspect", "fov": "fov"}

    def init(self) -> None:
        """Compute view and projection matrices and their inverses."""
        self.view = _look_at(self.pos, self.center, np.array([0.0, 1.0, 0.0]))
        self.inv_view = np.linalg.inv(self.view)
        self.proj = _perspective(self.fov * PI / 180.0, self.aspect, 0.001, 100.0)
        self.inv_proj = np.linalg.inv(self.proj)

    def generate_ray(self, u: float, v: float) -> Ray:
        d_eye = self.inv_proj @ np.array([u / self.aspect, v / self.aspect, -1.0, 1.0])
        d_eye[3] = 0.0
        d = normalize((self.inv_view @ d_eye)[:3])
        return Ray(self.pos, d)


class GonioCamera(Camera):
    """Parallel rays hitting a square patch from angles ``theta`` and ``phi``."""

    def __init__(
        self,
        theta: float = 0.0,
        phi: float = 0.0,
        center=(0.0, 0.0, 0.0),
        size: float = 1.0,
        offset: float = 100.0,
    ) -> None:
        super().__init__("GonioCamera")
        self.theta = theta
        self.phi = phi
        self.center = np.asarray(center, dtype=float).copy()
        self.size = size
        self.offset = offset
        self.dir = np.array([0.0, -1.0, 0.0])
        self.init()

    def _link_params(self) -> Mapping[str, str]:
        return {
            "theta": "theta",
            "phi": "phi",
            "center": "center",
            "size": "size",
            "offset": "offset",
        }

    def init(self) -> None:
        """Compute the ray direction from the two angles."""
        st = math.sin(self.theta)
        self.dir = -np.array(
            [math.cos(self.phi) * st, math.cos(self.theta), math.sin(self.phi) * st], dtype=float
        )

    def generate_ray(self, u: float, v: float) -> Ray:
        pos = self.center + self.size * np.array([u, 0.0, v], dtype=float)
        return Ray(pos - self.dir * self.offset, self.dir)