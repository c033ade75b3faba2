from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np
from scipy.spatial import ConvexHull

from hexvoxel.util.math import normalize
from hexvoxel.world.lattice import lattice_to_space

# Lattice offsets of the six points that make up a cell, by mask bit.
# Opposite pairs (0,1), (2,3), (4,5) share a midpoint: the cell is an
# octahedron centred between the center point and its (1,0,1) neighbour.
CELL_OFFSETS = np.array(
    [
        (0, 0, 0),
        (1, 0, 1),
        (0, 0, 1),
        (1, 0, 0),
        (1, -1, 1),
        (0, 1, 0),
    ],
    dtype=np.int64,
)
CELL_OFFSETS.setflags(write=False)

# The slab across the octahedral gap between this layer and the next one up:
# center, (1,0,1), and the two next-layer points (-1,1,0) and (0,1,1).
DIAGONAL_OFFSETS = np.array(
    [
        (0, 0, 0),
        (1, 0, 1),
        (-1, 1, 0),
        (0, 1, 1),
    ],
    dtype=np.int64,
)
DIAGONAL_OFFSETS.setflags(write=False)

N_MASKS = 1 << len(CELL_OFFSETS)

_EPS = 1e-9


class Shape(Enum):
    EMPTY = "empty"
    TRIANGLE = "triangle"
    HORIZONTAL_SQUARE = "horizontal square"
    VERTICAL_SQUARE = "vertical square"
    VERTICAL_SQUARE_2 = "vertical square 2"
    CORNER_TETRAHEDRON = "corner tetrahedron"
    NEW_TETRAHEDRON = "new tetrahedron"
    TETRAHEDRON = "tetrahedron"
    RECTANGULAR_PRISM = "rectangular prism"
    OCTAHEDRON = "octahedron"
    THIRD_DIAGONAL = "third diagonal"


@dataclass(frozen=True)
class TableEntry:
    mask: Optional[int]  # None for the diagonal slab, which is not a cell pattern
    shape: Shape
    vertices: np.ndarray  # (n,3) int64 lattice offsets from the cell center
    triangles: np.ndarray  # (3m,) int64 indices into vertices
    normals: np.ndarray  # (n,3) float32 Euclidean face normals

    @property
    def n_vertices(self) -> int:
        return int(self.vertices.shape[0])

    @property
    def n_triangles(self) -> int:
        return int(self.triangles.size // 3)


def mask_bits(mask: int) -> list[int]:
    return [i for i in range(len(CELL_OFFSETS)) if mask & (1 << i)]


def mask_from_hits(hits) -> int:
    mask = 0
    for i, hit in enumerate(hits):
        if hit:
            mask |= 1 << i
    return mask


def classify(mask: int) -> Shape:
    """Name the patch a mask produces."""
    hits = mask_bits(mask)
    misses = [i for i in range(len(CELL_OFFSETS)) if i not in hits]
    n = len(hits)
    if n == 6:
        return Shape.OCTAHEDRON
    if n == 5:
        return Shape.RECTANGULAR_PRISM
    if n == 4:
        if misses == [4, 5]:
            return Shape.HORIZONTAL_SQUARE
        if misses == [2, 3]:
            return Shape.VERTICAL_SQUARE
        if misses == [0, 1]:
            return Shape.VERTICAL_SQUARE_2
        if hits[2] == 4 and hits[3] == 5:
            return Shape.CORNER_TETRAHEDRON
        if misses[0] in (0, 1):
            return Shape.NEW_TETRAHEDRON
        return Shape.TETRAHEDRON
    if n == 3:
        return Shape.TRIANGLE
    return Shape.EMPTY


def _face_up(normal: np.ndarray) -> np.ndarray:
    """Flip a planar patch normal so it faces +y (ties broken on x, then z)."""
    for axis in (1, 0, 2):
        if abs(float(normal[axis])) > _EPS:
            return normal if normal[axis] > 0 else -normal
    return normal


def _plane_normal(points: np.ndarray) -> tuple[np.ndarray, bool]:
    """Best-fit plane normal of a point set, and whether every point lies on that plane."""
    centred = points - points.mean(axis=0)
    _, s, vt = np.linalg.svd(centred)
    return vt[-1], bool(s[-1] <= _EPS)


def _hull_faces(points: np.ndarray) -> dict[frozenset, np.ndarray]:
    """Hull faces of a non-coplanar point set, keyed by the points lying on them.

    Qhull returns triangulated facets; the ones sharing a plane are merged
    back into a single polygon. Normals point outward.
    """
    hull = ConvexHull(points)
    planes: list[tuple[np.ndarray, set]] = []
    for simplex, eq in zip(hull.simplices, hull.equations):
        for plane, members in planes:
            if np.allclose(plane, eq, atol=1e-9):
                members.update(int(v) for v in simplex)
                break
        else:
            planes.append((eq, {int(v) for v in simplex}))
    return {frozenset(members): eq[:3] / np.linalg.norm(eq[:3]) for eq, members in planes}


def _ordered_cycle(points: np.ndarray, members, normal: np.ndarray) -> list[int]:
    """Members of a planar face in counter-clockwise order seen from the normal's side."""
    idx = sorted(members)
    pts = points[idx]
    centre = pts.mean(axis=0)
    u = normalize(pts[0] - centre)
    v = np.cross(normal, u)
    rel = pts - centre
    angles = np.arctan2(rel @ v, rel @ u)
    return [idx[o] for o in np.argsort(angles, kind="stable")]


def _build_entry(mask: int) -> Optional[TableEntry]:
    bits = mask_bits(mask)
    if len(bits) < 3:
        return None

    offsets = CELL_OFFSETS[bits]
    points = lattice_to_space(offsets)
    plane, flat = _plane_normal(points)

    verts: list[np.ndarray] = []
    norms: list[np.ndarray] = []
    tris: list[int] = []

    def emit(cycle: list[int], normal: np.ndarray) -> None:
        base = len(verts)
        for c in cycle:
            verts.append(offsets[c])
            norms.append(normal)
        for t in range(1, len(cycle) - 1):
            tris.extend([base, base + t, base + t + 1])

    if flat:
        # Flat patch: visible from both sides.
        normal = _face_up(plane)
        cycle = _ordered_cycle(points, range(len(bits)), normal)
        emit(cycle, normal)
        emit(cycle[::-1], -normal)
    else:
        faces = _hull_faces(points)
        for members in sorted(faces, key=lambda m: sorted(m)):
            normal = faces[members]
            emit(_ordered_cycle(points, members, normal), normal)

    return TableEntry(
        mask=mask,
        shape=classify(mask),
        vertices=_frozen(np.array(verts, dtype=np.int64).reshape(-1, 3)),
        triangles=_frozen(np.array(tris, dtype=np.int64)),
        normals=_frozen(np.array(norms, dtype=np.float32).reshape(-1, 3)),
    )


def _frozen(a: np.ndarray) -> np.ndarray:
    a.setflags(write=False)
    return a


def build_table() -> tuple[Optional[TableEntry], ...]:
    return tuple(_build_entry(mask) for mask in range(N_MASKS))


def _build_diagonal() -> TableEntry:
    c, corner, up_left, up_right = (DIAGONAL_OFFSETS[i] for i in range(4))
    front = [c, up_left, up_right, c, up_right, corner]
    verts = front + front[::-1]

    p = lattice_to_space(np.array(front[:3]))
    normal = normalize(np.cross(p[1] - p[0], p[2] - p[0]))
    norms = [normal] * 6 + [-normal] * 6

    return TableEntry(
        mask=None,
        shape=Shape.THIRD_DIAGONAL,
        vertices=_frozen(np.array(verts, dtype=np.int64)),
        triangles=_frozen(np.arange(12, dtype=np.int64)),
        normals=_frozen(np.array(norms, dtype=np.float32)),
    )


# Built once at import; entries and their arrays are read-only.
TRIANGULATION_TABLE: tuple[Optional[TableEntry], ...] = build_table()
DIAGONAL_ENTRY: TableEntry = _build_diagonal()
