from __future__ import annotations

import argparse
import logging
import random
import time
from typing import Optional, Sequence

from hexvoxel.config import (
    APP_VERSION,
    DEFAULT_CHUNK_HEIGHT,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_DROP_OFF,
    DEFAULT_NOISE_AMPLITUDE,
    DEFAULT_NOISE_SCALE,
    DEFAULT_OFFSET_LAND,
    DEFAULT_POINT_MODE,
    DEFAULT_RADIUS,
    DEFAULT_RECALCULATE_NORMALS,
    DEFAULT_REGION_HEIGHT,
    DEFAULT_SEED,
    DEFAULT_SMOOTH_LAND,
    DEFAULT_THIRD_DIAGONAL,
    DEFAULT_THRESHOLD,
)
from hexvoxel.world.debug import ShapeLogger
from hexvoxel.world.params import PointMode, TerrainParams
from hexvoxel.world.world import ChunkWindow, World

logger = logging.getLogger(__name__)


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="hexvoxel", description=f"Hex-lattice voxel terrain mesher v{APP_VERSION}")
    p.add_argument("--seed", default=str(DEFAULT_SEED), help="int seed or 'random' (default: 12345)")
    p.add_argument("--chunk-size", type=int, default=DEFAULT_CHUNK_SIZE, help="lattice cells per chunk along x and z (default: 8)")
    p.add_argument("--chunk-height", type=int, default=DEFAULT_CHUNK_HEIGHT, help="lattice cells per chunk along y (default: 8)")
    p.add_argument("--noise-scale", type=float, default=DEFAULT_NOISE_SCALE, help="noise frequency (default: 0.01)")
    p.add_argument("--noise-amplitude", type=float, default=DEFAULT_NOISE_AMPLITUDE, help="noise amplitude (default: 20)")
    p.add_argument("--threshold", type=float, default=DEFAULT_THRESHOLD, help="surface density threshold")
    p.add_argument("--drop-off", type=float, default=DEFAULT_DROP_OFF, help="vertical density bias per lattice y")
    p.add_argument(
        "--third-diagonal",
        dest="third_diagonal",
        action="store_true",
        default=DEFAULT_THIRD_DIAGONAL,
        help="fill the diagonal slab between layers (default on)",
    )
    p.add_argument("--no-third-diagonal", dest="third_diagonal", action="store_false", help="disable the diagonal slab")
    p.add_argument("--offset", action="store_true", default=DEFAULT_OFFSET_LAND, help="jitter vertices along the noise gradient")
    p.add_argument("--smooth", action="store_true", default=DEFAULT_SMOOTH_LAND, help="snap vertices onto the density threshold")
    p.add_argument(
        "--recalc-normals",
        action="store_true",
        default=DEFAULT_RECALCULATE_NORMALS,
        help="recompute normals from faces when uploading (preview only)",
    )
    p.add_argument(
        "--points",
        choices=[m.value for m in PointMode],
        default=DEFAULT_POINT_MODE,
        help="debug points to collect: none, gradient (solid cells) or all",
    )
    p.add_argument("--radius", type=int, default=DEFAULT_RADIUS, help="chunks on each side of the origin along x/z")
    p.add_argument("--height", type=int, default=DEFAULT_REGION_HEIGHT, help="chunk layers above and below the surface")
    p.add_argument("--view", action="store_true", help="open the preview window instead of printing stats")
    p.add_argument("--wireframe", action="store_true", help="render wireframe (with --view)")
    p.add_argument("--debug", action="store_true", help="debug logging, including per-cell shapes")
    return p.parse_args(argv)


def _seed(value: str) -> int:
    if isinstance(value, str) and value.lower() == "random":
        seed = random.randint(0, 2**31 - 1)
        logger.info("random seed: %d", seed)
        return seed
    return int(value)


def params_from_args(args: argparse.Namespace) -> TerrainParams:
    return TerrainParams(
        seed=_seed(args.seed),
        chunk_size=int(args.chunk_size),
        chunk_height=int(args.chunk_height),
        noise_scale=float(args.noise_scale),
        noise_amplitude=float(args.noise_amplitude),
        threshold=float(args.threshold),
        drop_off=float(args.drop_off),
        third_diagonal=bool(args.third_diagonal),
        offset_land=bool(args.offset),
        smooth_land=bool(args.smooth),
        recalculate_normals=bool(args.recalc_normals),
        point_mode=PointMode(args.points),
    )


def run_headless(params: TerrainParams, window: ChunkWindow, *, debug: bool = False) -> dict:
    """Generate the window around the surface above the origin and return summary stats."""
    observers = [ShapeLogger()] if debug else []
    world = World(params, observers=observers)
    t0 = time.perf_counter()
    meshes = world.generate_region(world.surface_chunks(window))
    elapsed = time.perf_counter() - t0
    return {
        "seed": params.seed,
        "chunks": len(meshes),
        "uniform": sum(1 for ch in world.chunks.values() if ch.uniform),
        "solid_cells": sum(int(ch.occupancy.sum()) for ch in world.chunks.values()),
        "vertices": sum(m.n_vertices for m in meshes.values()),
        "triangles": sum(m.n_triangles for m in meshes.values()),
        "seconds": elapsed,
    }


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    params = params_from_args(args)

    if args.view:
        # Imported here so headless runs don't need a display stack.
        from hexvoxel.app import run_app

        run_app(
            params=params,
            radius=int(args.radius),
            region_height=int(args.height),
            wireframe=bool(args.wireframe),
            debug=bool(args.debug),
        )
        return

    stats = run_headless(params, ChunkWindow(radius=int(args.radius), height=int(args.height)), debug=bool(args.debug))
    print(
        f"seed={stats['seed']} chunks={stats['chunks']} uniform={stats['uniform']} "
        f"solid_cells={stats['solid_cells']} vertices={stats['vertices']} "
        f"triangles={stats['triangles']} time={stats['seconds']:.2f}s"
    )


if __name__ == "__main__":
    main()
