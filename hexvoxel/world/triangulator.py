from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import numpy as np

from hexvoxel.world.tables import (
    CELL_OFFSETS,
    DIAGONAL_ENTRY,
    DIAGONAL_OFFSETS,
    TRIANGULATION_TABLE,
    Shape,
    TableEntry,
    classify,
    mask_from_hits,
)

SolidFn = Callable[[tuple[int, int, int]], bool]


@dataclass(frozen=True)
class CellGeometry:
    mask: int
    shape: Shape
    third_diagonal: bool
    vertices: np.ndarray  # (n,3) int64 lattice coordinates
    triangles: np.ndarray  # (3m,) int64, already offset by the caller's base
    normals: np.ndarray  # (n,3) float32

    @property
    def n_vertices(self) -> int:
        return int(self.vertices.shape[0])

    @property
    def n_triangles(self) -> int:
        return int(self.triangles.size // 3)


_NO_VERTS = np.zeros((0, 3), dtype=np.int64)
_NO_TRIS = np.zeros((0,), dtype=np.int64)
_NO_NORMS = np.zeros((0, 3), dtype=np.float32)


def _shift(center: np.ndarray, offset: np.ndarray) -> tuple[int, int, int]:
    return (int(center[0] + offset[0]), int(center[1] + offset[1]), int(center[2] + offset[2]))


class Triangulator:
    """Turns the solid pattern around one cell into triangles via the lookup table."""

    def __init__(
        self,
        table: Sequence[Optional[TableEntry]] = TRIANGULATION_TABLE,
        *,
        third_diagonal: bool = True,
    ) -> None:
        self.table = table
        self.third_diagonal = bool(third_diagonal)

    def mask_at(self, center, solid: SolidFn) -> int:
        c = np.asarray(center, dtype=np.int64)
        return mask_from_hits(solid(_shift(c, off)) for off in CELL_OFFSETS)

    def has_diagonal(self, center, solid: SolidFn) -> bool:
        c = np.asarray(center, dtype=np.int64)
        return all(solid(_shift(c, off)) for off in DIAGONAL_OFFSETS)

    def build(self, center, solid: SolidFn, base: int = 0) -> CellGeometry:
        """Geometry for the cell at `center`.

        `solid` answers occupancy for a lattice coordinate in the same frame as
        `center`. Triangle indices start at `base`, the caller's running vertex count.
        """
        c = np.asarray(center, dtype=np.int64)
        mask = self.mask_at(c, solid)
        entry = self.table[mask] if 0 <= mask < len(self.table) else None

        parts: list[TableEntry] = []
        if entry is not None:
            parts.append(entry)

        diagonal = self.third_diagonal and self.has_diagonal(c, solid)
        if diagonal:
            parts.append(DIAGONAL_ENTRY)

        if not parts:
            return CellGeometry(mask, classify(mask), False, _NO_VERTS, _NO_TRIS, _NO_NORMS)

        verts, tris, norms = [], [], []
        count = 0
        for part in parts:
            verts.append(part.vertices + c[None, :])
            tris.append(part.triangles + (base + count))
            norms.append(part.normals)
            count += part.n_vertices

        return CellGeometry(
            mask=mask,
            shape=classify(mask),
            third_diagonal=diagonal,
            vertices=np.concatenate(verts, axis=0),
            triangles=np.concatenate(tris, axis=0),
            normals=np.concatenate(norms, axis=0),
        )
