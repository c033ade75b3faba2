from __future__ import annotations

import dataclasses
import logging
import random
import time
from typing import Dict

import moderngl
import numpy as np
import pygame

from hexvoxel.config import APP_VERSION, FPS_CAP, LIGHT_DIR, ORBIT_SPEED, WINDOW_HEIGHT, WINDOW_WIDTH
from hexvoxel.render.camera import OrbitCamera
from hexvoxel.render.renderer import ChunkGPU, Renderer
from hexvoxel.util.math import normalize
from hexvoxel.world.debug import GenerationObserver, PointCollector, ShapeLogger
from hexvoxel.world.lattice import ChunkCoord
from hexvoxel.world.params import TerrainParams
from hexvoxel.world.world import ChunkWindow, World

logger = logging.getLogger(__name__)


def _init_pygame_gl() -> None:
    pygame.init()
    pygame.display.gl_set_attribute(pygame.GL_CONTEXT_MAJOR_VERSION, 3)
    pygame.display.gl_set_attribute(pygame.GL_CONTEXT_MINOR_VERSION, 3)
    pygame.display.gl_set_attribute(pygame.GL_CONTEXT_PROFILE_MASK, pygame.GL_CONTEXT_PROFILE_CORE)
    pygame.display.gl_set_attribute(pygame.GL_DEPTH_SIZE, 24)
    pygame.display.gl_set_attribute(pygame.GL_DOUBLEBUFFER, 1)


class Preview:
    """Generates a window of chunks and keeps their GPU buffers in sync."""

    def __init__(self, renderer: Renderer, params: TerrainParams, window: ChunkWindow, *, debug: bool) -> None:
        self.renderer = renderer
        self.params = params
        self.window = window
        self.debug = debug
        self.points = PointCollector()
        self.gpu: Dict[ChunkCoord, ChunkGPU] = {}
        self.world: World | None = None

    def _observers(self) -> list[GenerationObserver]:
        obs: list[GenerationObserver] = [self.points]
        if self.debug:
            obs.append(ShapeLogger())
        return obs

    def regenerate(self, params: TerrainParams) -> None:
        self.params = params
        self.points = PointCollector()
        t0 = time.perf_counter()
        self.world = World(params, observers=self._observers())
        meshes = self.world.generate_region(self.world.surface_chunks(self.window))
        logger.info("regenerated in %.2fs (seed=%d third_diagonal=%s smooth=%s)",
                    time.perf_counter() - t0, params.seed, params.third_diagonal, params.smooth_land)

        self.release_chunks()
        for coord, mesh in meshes.items():
            gpu = self.renderer.upload_chunk(coord, mesh, recalc_normals=params.recalculate_normals)
            if gpu is not None:
                self.gpu[coord] = gpu
        self.renderer.set_points(self.points.as_array())

    def center(self) -> np.ndarray:
        if self.world is None or not self.world.chunks:
            return np.zeros(3, dtype=np.float32)
        verts = [c.mesh.vertices for c in self.world.chunks.values() if not c.mesh.is_empty]
        if not verts:
            return np.zeros(3, dtype=np.float32)
        return np.concatenate(verts, axis=0).mean(axis=0).astype(np.float32)

    def release_chunks(self) -> None:
        for gpu in self.gpu.values():
            gpu.release()
        self.gpu.clear()

    def draw(self) -> None:
        for gpu in self.gpu.values():
            self.renderer.draw_chunk(gpu)
        self.renderer.draw_points()


def run_app(
    *,
    params: TerrainParams,
    radius: int,
    region_height: int,
    wireframe: bool,
    debug: bool,
) -> None:
    _init_pygame_gl()

    flags = pygame.OPENGL | pygame.DOUBLEBUF | pygame.RESIZABLE
    pygame.display.set_mode((WINDOW_WIDTH, WINDOW_HEIGHT), flags)
    pygame.display.set_caption(f"hexvoxel v{APP_VERSION} (seed={params.seed})")

    try:
        ctx = moderngl.create_context()
    except Exception as e:
        pygame.quit()
        raise RuntimeError("Failed to create ModernGL context (need OpenGL 3.3)") from e

    logger.debug("moderngl ctx version_code=%s renderer=%s", ctx.version_code, ctx.info.get("GL_RENDERER"))
    if wireframe:
        ctx.wireframe = True

    renderer = Renderer(ctx, WINDOW_WIDTH, WINDOW_HEIGHT)
    preview = Preview(renderer, params, ChunkWindow(radius=radius, height=region_height), debug=debug)
    preview.regenerate(params)

    extent = float(params.chunk_size) * 2.0 * (2 * radius + 1)
    cam = OrbitCamera(preview.center(), distance=extent * 1.2)
    light_dir = normalize(np.array(LIGHT_DIR, dtype=np.float32))

    clock = pygame.time.Clock()
    auto_orbit = True
    running = True
    last_t = time.perf_counter()

    try:
        while running:
            now = time.perf_counter()
            dt = min(now - last_t, 0.05)
            last_t = now

            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    running = False
                elif event.type == pygame.VIDEORESIZE:
                    w, h = max(64, event.w), max(64, event.h)
                    pygame.display.set_mode((w, h), flags)
                    renderer.resize(w, h)
                elif event.type == pygame.KEYDOWN:
                    p = preview.params
                    if event.key == pygame.K_ESCAPE:
                        running = False
                    elif event.key == pygame.K_SPACE:
                        auto_orbit = not auto_orbit
                    elif event.key == pygame.K_t:
                        preview.regenerate(dataclasses.replace(p, third_diagonal=not p.third_diagonal))
                    elif event.key == pygame.K_s:
                        preview.regenerate(dataclasses.replace(p, smooth_land=not p.smooth_land))
                    elif event.key == pygame.K_o:
                        preview.regenerate(dataclasses.replace(p, offset_land=not p.offset_land))
                    elif event.key == pygame.K_r:
                        preview.regenerate(dataclasses.replace(p, seed=random.randint(0, 2**31 - 1)))
                        cam.target = preview.center()
                        pygame.display.set_caption(f"hexvoxel v{APP_VERSION} (seed={preview.params.seed})")

            keys = pygame.key.get_pressed()
            yaw_rate = (keys[pygame.K_RIGHT] - keys[pygame.K_LEFT]) * 1.2
            if auto_orbit and not yaw_rate:
                yaw_rate = ORBIT_SPEED
            cam.update(
                dt,
                yaw_rate=yaw_rate,
                pitch_rate=(keys[pygame.K_UP] - keys[pygame.K_DOWN]) * 0.8,
                zoom=(keys[pygame.K_EQUALS] - keys[pygame.K_MINUS]) * 1.0,
            )

            renderer.begin_frame()
            renderer.set_common_uniforms(
                view=cam.view_matrix(),
                cam_pos=cam.eye(),
                light_dir=light_dir,
                fog_start=cam.distance * 1.5,
                fog_end=cam.distance * 3.0,
            )
            preview.draw()
            pygame.display.flip()
            clock.tick(FPS_CAP)
    finally:
        preview.release_chunks()
        renderer.release()
        pygame.quit()
