"""Scene geometry: triangle meshes read from OBJ files and analytic spheres."""

from __future__ import annotations

from pathlib import Path
from typing import Mapping

import numpy as np

from liltrace.brdf import Brdf
from liltrace.common import Serializable, normalize

INVALID_GEOMETRY_ID = -1

# Index 0 stands for "no position / no normal" in OBJ references.
_DEFAULT_POSITION = (0.0, 0.0, 0.0)
_DEFAULT_NORMAL = (0.0, 0.0, 1.0)


class Geometry(Serializable):
    """Base for shapes placed in the scene, each carrying an optional BRDF."""

    def __init__(self, type_name: str) -> None:
        super().__init__(type_name)
        self.brdf: Brdf | None = None
        self.rtc_id = INVALID_GEOMETRY_ID
        self.local_to_world = np.identity(4)


def _parse_vector(parts: list[str], line_no: int) -> tuple[float, float, float]:
    if len(parts) < 4:
        raise ValueError(f"line {line_no}: expected three coordinates")
    try:
        return float(parts[1]), float(parts[2]), float(parts[3])
    except ValueError as exc:
        raise ValueError(f"line {line_no}: invalid coordinate") from exc


def _resolve_index(token: str, count: int, line_no: int, kind: str) -> int:
    """Turn a 1-based or negative OBJ reference into a 1-based absolute index."""
    try:
        idx = int(token)
    except ValueError as exc:
        raise ValueError(f"line {line_no}: invalid {kind} index {token!r}") from exc
    if idx < 0:
        idx = count + idx + 1
    if not 1 <= idx <= count:
        raise ValueError(f"line {line_no}: {kind} index {token} out of range")
    return idx


def _read_obj(path: Path):
    """Read positions, normals and triangulated faces of (position, normal) references."""
    positions = [_DEFAULT_POSITION]
    normals = [_DEFAULT_NORMAL]
    faces: list[list[tuple[int, int]]] = []

    with path.open("r", encoding="utf-8") as handle:
        for line_no, raw in enumerate(handle, start=1):
            line = raw.split("#", 1)[0].strip()
            if not line:
                continue
            parts = line.split()
            keyword = parts[0]
            if keyword == "v":
                positions.append(_parse_vector(parts, line_no))
            elif keyword == "vn":
                normals.append(_parse_vector(parts, line_no))
            elif keyword == "f":
                refs = []
                for token in parts[1:]:
                    fields = token.split("/")
                    p = _resolve_index(fields[0], len(positions) - 1, line_no, "position")
                    n_token = fields[2] if len(fields) > 2 else ""
                    n = _resolve_index(n_token, len(normals) - 1, line_no, "normal") if n_token else 0
                    refs.append((p, n))
                if len(refs) < 3:
                    raise ValueError(f"line {line_no}: a face needs at least three vertices")
                faces.extend([refs[0], refs[i], refs[i + 1]] for i in range(1, len(refs) - 1))
    return positions, normals, faces


class Mesh(Geometry):
    """Triangle mesh with per-vertex normals."""

    def __init__(self, filename: str | Path = "") -> None:
        super().__init__("Mesh")
        self.filename = str(filename)
        self.vertex = np.zeros((0, 3))
        self.normal = np.zeros((0, 3))
        self.triangle_indices = np.zeros((0, 3), dtype=np.int64)

    def _link_params(self) -> Mapping[str, str]:
        return {"filename": "filename", "brdf": "brdf", "local_to_world": "local_to_world"}

    def init(self) -> None:
        """Load the OBJ file, sharing vertices that have the same position and normal."""
        positions, normals, faces = _read_obj(Path(self.filename))

        lookup: dict[tuple[int, int], int] = {}
        vertices: list[tuple[float, float, float]] = []
        vertex_normals: list[tuple[float, float, float]] = []
        triangles: list[list[int]] = []
        for face in faces:
            triangle = []
            for key in face:
                if key not in lookup:
                    lookup[key] = len(vertices)
                    vertices.append(positions[key[0]])
                    vertex_normals.append(normals[key[1]])
                triangle.append(lookup[key])
            triangles.append(triangle)

        self.vertex = np.array(vertices, dtype=float).reshape(-1, 3)
        self.normal = np.array(vertex_normals, dtype=float).reshape(-1, 3)
        self.triangle_indices = np.array(triangles, dtype=np.int64).reshape(-1, 3)

    def get_normal(self, prim_id: int, u: float, v: float) -> np.ndarray:
        """Normal of triangle ``prim_id`` interpolated at barycentrics ``(u, v)``."""
        i1, i2, i3 = self.triangle_indices[prim_id]
        n1, n2, n3 = self.normal[i1], self.normal[i2], self.normal[i3]
        return normalize(n2 * u + n3 * v + n1 * (1.0 - u - v))


class Sphere(Geometry):
    """Sphere of radius ``rad`` centred at ``pos``."""

    def __init__(self, pos=(0.0, 0.0, 0.0), rad: float = 1.0, brdf: Brdf | None = None) -> None:
        super().__init__("Sphere")
        self.pos = np.asarray(pos, dtype=float).copy()
        self.rad = rad
        self.brdf = brdf

    def _link_params(self) -> Mapping[str, str]:
        return {"pos": "pos", "rad": "rad", "brdf": "brdf", "local_to_world": "local_to_world"}

    def init(self) -> None:
        """Nothing to prepare for an analytic sphere."""

    def get_normal(self, hit_pos) -> np.ndarray:
        return (np.asarray(hit_pos, dtype=float) - self.pos) / self.rad