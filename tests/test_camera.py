import math

import numpy as np
import pytest

from liltrace.camera import Camera, GonioCamera, PerspectiveCamera


def test_camera_is_abstract():
    with pytest.raises(TypeError):
        Camera("Camera")


def test_perspective_defaults():
    cam = PerspectiveCamera()
    assert cam.type == "PerspectiveCamera"
    assert np.allclose(cam.pos, [-1.0, 0.0, 0.0])
    assert cam.fov == 40.0
    assert set(cam.params) == {"pos", "center", "aspect", "fov"}


def test_center_ray_points_at_target():
    cam = PerspectiveCamera()
    ray = cam.generate_ray(0.0, 0.0)
    assert np.allclose(ray.o, cam.pos)
    assert np.allclose(ray.d, [1.0, 0.0, 0.0])


def test_center_ray_after_moving_camera():
    cam = PerspectiveCamera(pos=(0.0, 0.0, 3.0), center=(0.0, 0.0, 0.0))
    ray = cam.generate_ray(0.0, 0.0)
    assert np.allclose(ray.d, [0.0, 0.0, -1.0])


@pytest.mark.parametrize("u,v", [(0.5, 0.0), (-0.3, 0.7), (1.0, -1.0)])
def test_rays_are_unit_and_forward(u, v):
    cam = PerspectiveCamera()
    ray = cam.generate_ray(u, v)
    assert np.linalg.norm(ray.d) == pytest.approx(1.0)
    assert ray.d[0] > 0.0


def test_image_axes_orientation_and_symmetry():
    cam = PerspectiveCamera()
    right = cam.generate_ray(0.5, 0.0).d
    left = cam.generate_ray(-0.5, 0.0).d
    up = cam.generate_ray(0.0, 0.5).d
    assert right[2] > 0.0
    assert np.allclose(left, right * np.array([1.0, 1.0, -1.0]))
    assert up[1] > 0.0


def test_wider_fov_spreads_rays():
    narrow = PerspectiveCamera(fov=20.0).generate_ray(1.0, 0.0).d
    wide = PerspectiveCamera(fov=80.0).generate_ray(1.0, 0.0).d
    assert wide[0] < narrow[0]


def test_edge_ray_matches_half_fov():
    cam = PerspectiveCamera(fov=60.0)
    d = cam.generate_ray(0.0, 1.0).d
    angle = math.atan2(d[1], d[0])
    assert angle == pytest.approx(math.radians(30.0), rel=1e-6)


def test_gonio_default_points_down():
    cam = GonioCamera()
    assert cam.type == "GonioCamera"
    assert np.allclose(cam.dir, [0.0, -1.0, 0.0])


def test_gonio_ray_lands_on_patch():
    cam = GonioCamera()
    ray = cam.generate_ray(0.5, -0.5)
    assert np.allclose(ray.d, cam.dir)
    landing = ray.o + cam.offset * ray.d
    assert np.allclose(landing, cam.center + cam.size * np.array([0.5, 0.0, -0.5]))


def test_gonio_direction_follows_angles():
    cam = GonioCamera(theta=math.pi / 2, phi=0.0)
    assert np.allclose(cam.dir, [-1.0, 0.0, 0.0], atol=1e-12)
    cam.phi = math.pi / 2
    cam.on_changes()
    assert np.allclose(cam.dir, [0.0, 0.0, -1.0], atol=1e-12)
    assert np.linalg.norm(cam.dir) == pytest.approx(1.0)


def test_gonio_rays_are_parallel():
    cam = GonioCamera(theta=0.4, phi=1.1, size=2.0)
    a = cam.generate_ray(-1.0, -1.0)
    b = cam.generate_ray(1.0, 1.0)
    assert np.allclose(a.d, b.d)
    assert np.allclose(b.o - a.o, [4.0, 0.0, 4.0])