from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass

import numpy as np

from hexvoxel.world.lattice import ChunkCoord, LatticeCoord
from hexvoxel.world.tables import Shape

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PointReport:
    chunk: ChunkCoord
    cell: LatticeCoord  # chunk-local
    position: np.ndarray  # Euclidean
    solid: bool


@dataclass(frozen=True)
class CellReport:
    chunk: ChunkCoord
    cell: LatticeCoord  # chunk-local
    mask: int
    shape: Shape
    third_diagonal: bool
    n_triangles: int


class GenerationObserver:
    """Receives structured data while a chunk is generated. Override what you need."""

    def on_chunk_start(self, chunk: ChunkCoord) -> None:
        pass

    def on_point(self, report: PointReport) -> None:
        pass

    def on_cell(self, report: CellReport) -> None:
        pass

    def on_chunk(self, chunk: ChunkCoord, n_vertices: int, n_triangles: int) -> None:
        pass


class ShapeLogger(GenerationObserver):
    """Logs each non-empty cell classification and a per-chunk tally."""

    def __init__(self, level: int = logging.DEBUG) -> None:
        self.level = level
        self.counts: Counter = Counter()

    def on_cell(self, report: CellReport) -> None:
        if report.shape is Shape.EMPTY and not report.third_diagonal:
            return
        if report.shape is not Shape.EMPTY:
            self.counts[report.shape] += 1
        if report.third_diagonal:
            self.counts[Shape.THIRD_DIAGONAL] += 1
        c = report.cell
        logger.log(
            self.level,
            "chunk %s cell (%d, %d, %d) = %s%s",
            tuple(report.chunk), c.x, c.y, c.z, report.shape.value,
            " + third diagonal" if report.third_diagonal else "",
        )

    def on_chunk(self, chunk: ChunkCoord, n_vertices: int, n_triangles: int) -> None:
        if self.counts:
            summary = ", ".join(f"{k.value}={v}" for k, v in sorted(self.counts.items(), key=lambda kv: kv[0].value))
            logger.log(self.level, "chunk %s shapes: %s", tuple(chunk), summary)
        self.counts.clear()


class PointCollector(GenerationObserver):
    """Keeps reported debug points, grouped by chunk."""

    def __init__(self) -> None:
        self.points: dict[ChunkCoord, list[np.ndarray]] = {}

    def on_point(self, report: PointReport) -> None:
        self.points.setdefault(report.chunk, []).append(report.position)

    def on_chunk_start(self, chunk: ChunkCoord) -> None:
        self.points.pop(chunk, None)

    def as_array(self) -> np.ndarray:
        pts = [p for group in self.points.values() for p in group]
        if not pts:
            return np.zeros((0, 3), dtype=np.float32)
        return np.array(pts, dtype=np.float32)
