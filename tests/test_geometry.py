import numpy as np
import pytest

from liltrace.brdf import Diffuse
from liltrace.geometry import INVALID_GEOMETRY_ID, Mesh, Sphere


QUAD = """\
# a unit quad
v 0 0 0
v 1 0 0
v 1 1 0
v 0 1 0
vn 0 0 1
f 1//1 2//1 3//1
f 1//1 3//1 4//1
"""


def _mesh(tmp_path, text):
    path = tmp_path / "mesh.obj"
    path.write_text(text)
    mesh = Mesh(path)
    mesh.init()
    return mesh


def test_quad_shares_vertices(tmp_path):
    mesh = _mesh(tmp_path, QUAD)
    assert mesh.vertex.shape == (4, 3)
    assert mesh.triangle_indices.shape == (2, 3)
    assert mesh.triangle_indices.tolist() == [[0, 1, 2], [0, 2, 3]]
    assert np.allclose(mesh.vertex[2], [1.0, 1.0, 0.0])


def test_polygon_is_fan_triangulated(tmp_path):
    text = "v 0 0 0\nv 1 0 0\nv 1 1 0\nv 0 1 0\nvn 0 0 1\nf 1//1 2//1 3//1 4//1\n"
    mesh = _mesh(tmp_path, text)
    assert mesh.triangle_indices.tolist() == [[0, 1, 2], [0, 2, 3]]


def test_negative_indices_match_positive(tmp_path):
    positive = _mesh(tmp_path, QUAD)
    negative_text = QUAD.replace("f 1//1 2//1 3//1", "f -4//-1 -3//-1 -2//-1")
    negative = _mesh(tmp_path, negative_text)
    assert np.array_equal(positive.vertex, negative.vertex)
    assert positive.triangle_indices.tolist() == negative.triangle_indices.tolist()


def test_distinct_normals_split_vertices(tmp_path):
    text = (
        "v 0 0 0\nv 1 0 0\nv 0 1 0\nv 0 0 1\n"
        "vn 0 0 1\nvn 1 0 0\n"
        "f 1//1 2//1 3//1\nf 1//2 2//2 4//2\n"
    )
    mesh = _mesh(tmp_path, text)
    assert len(mesh.vertex) == 6
    assert np.allclose(mesh.normal[3], [1.0, 0.0, 0.0])


def test_interpolated_normal_at_corners(tmp_path):
    text = "v 0 0 0\nv 1 0 0\nv 0 1 0\nvn 0 0 1\nvn 1 0 0\nvn 0 1 0\nf 1//1 2//2 3//3\n"
    mesh = _mesh(tmp_path, text)
    assert np.allclose(mesh.get_normal(0, 0.0, 0.0), [0.0, 0.0, 1.0])
    assert np.allclose(mesh.get_normal(0, 1.0, 0.0), [1.0, 0.0, 0.0])
    assert np.allclose(mesh.get_normal(0, 0.0, 1.0), [0.0, 1.0, 0.0])
    mid = mesh.get_normal(0, 1 / 3, 1 / 3)
    assert np.isclose(np.linalg.norm(mid), 1.0)


def test_missing_file_raises(tmp_path):
    mesh = Mesh(tmp_path / "absent.obj")
    with pytest.raises(FileNotFoundError):
        mesh.init()


def test_out_of_range_index_raises(tmp_path):
    with pytest.raises(ValueError):
        _mesh(tmp_path, "v 0 0 0\nv 1 0 0\nv 0 1 0\nf 1 2 7\n")


def test_short_face_raises(tmp_path):
    with pytest.raises(ValueError):
        _mesh(tmp_path, "v 0 0 0\nv 1 0 0\nf 1 2\n")


def test_mesh_defaults():
    mesh = Mesh()
    assert mesh.type == "Mesh"
    assert mesh.brdf is None
    assert mesh.rtc_id == INVALID_GEOMETRY_ID
    assert np.array_equal(mesh.local_to_world, np.identity(4))
    assert set(mesh.params) == {"filename", "brdf", "local_to_world"}


def test_sphere_normal_is_unit_on_surface():
    sphere = Sphere(pos=(1.0, 2.0, 3.0), rad=2.0)
    hit = np.array([1.0, 2.0, 5.0])
    assert np.allclose(sphere.get_normal(hit), [0.0, 0.0, 1.0])
    direction = np.array([1.0, -2.0, 2.0]) / 3.0
    normal = sphere.get_normal(sphere.pos + 2.0 * direction)
    assert np.allclose(normal, direction)


def test_sphere_keeps_brdf():
    brdf = Diffuse(0.5)
    sphere = Sphere(brdf=brdf)
    assert sphere.brdf is brdf
    assert sphere.rad == 1.0
    assert np.array_equal(sphere.pos, np.zeros(3))