from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from hexvoxel.config import (
    DEFAULT_CHUNK_HEIGHT,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_DROP_OFF,
    DEFAULT_NOISE_AMPLITUDE,
    DEFAULT_NOISE_SCALE,
    DEFAULT_OFFSET_LAND,
    DEFAULT_POINT_MODE,
    DEFAULT_RECALCULATE_NORMALS,
    DEFAULT_SEED,
    DEFAULT_SMOOTH_LAND,
    DEFAULT_THIRD_DIAGONAL,
    DEFAULT_THRESHOLD,
)


class PointMode(Enum):
    """Which cells are reported to observers as debug points."""

    NONE = "none"
    GRADIENT = "gradient"  # cells that passed the edge test
    ALL = "all"


@dataclass(frozen=True)
class TerrainParams:
    seed: int = DEFAULT_SEED
    chunk_size: int = DEFAULT_CHUNK_SIZE
    chunk_height: int = DEFAULT_CHUNK_HEIGHT
    noise_scale: float = DEFAULT_NOISE_SCALE
    noise_amplitude: float = DEFAULT_NOISE_AMPLITUDE
    threshold: float = DEFAULT_THRESHOLD
    drop_off: float = DEFAULT_DROP_OFF
    third_diagonal: bool = DEFAULT_THIRD_DIAGONAL
    offset_land: bool = DEFAULT_OFFSET_LAND
    smooth_land: bool = DEFAULT_SMOOTH_LAND
    recalculate_normals: bool = DEFAULT_RECALCULATE_NORMALS
    point_mode: PointMode = PointMode(DEFAULT_POINT_MODE)

    def __post_init__(self) -> None:
        if int(self.chunk_size) <= 0 or int(self.chunk_height) <= 0:
            raise ValueError(f"chunk dimensions must be positive, got {self.chunk_size}x{self.chunk_height}")
        if float(self.noise_scale) <= 0.0:
            raise ValueError(f"noise_scale must be positive, got {self.noise_scale}")
        if not isinstance(self.point_mode, PointMode):
            object.__setattr__(self, "point_mode", PointMode(str(self.point_mode).lower()))

    @property
    def chunk_dims(self) -> tuple[int, int, int]:
        return (self.chunk_size, self.chunk_height, self.chunk_size)
