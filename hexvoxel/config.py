from __future__ import annotations

# App
APP_VERSION = "0.4.1"

# Window (preview host)
WINDOW_WIDTH = 1280
WINDOW_HEIGHT = 720
FPS_CAP = 60

# Terrain / chunks
DEFAULT_SEED = 12345
DEFAULT_CHUNK_SIZE = 8  # lattice cells along x and z
DEFAULT_CHUNK_HEIGHT = 8  # lattice cells along y

# Density field
DEFAULT_NOISE_SCALE = 0.01  # spatial frequency of the value noise
DEFAULT_NOISE_AMPLITUDE = 20.0
DEFAULT_THRESHOLD = 0.0
DEFAULT_DROP_OFF = 0.25  # vertical bias: density += drop_off * y

# Meshing
DEFAULT_THIRD_DIAGONAL = True
DEFAULT_OFFSET_LAND = False
DEFAULT_SMOOTH_LAND = False
DEFAULT_RECALCULATE_NORMALS = False
DEFAULT_POINT_MODE = "none"  # none | gradient | all

# Region generated by the CLI / preview (in chunks)
DEFAULT_RADIUS = 1  # chunks on each side of the origin along x and z
DEFAULT_REGION_HEIGHT = 1  # chunk layers above and below the surface layer

# Rendering
FOV_DEG = 60.0
NEAR = 0.1
FAR = 600.0
LIGHT_DIR = (0.35, 0.9, 0.2)  # will be normalized in shader
ORBIT_SPEED = 0.35  # rad/sec when auto-orbiting
