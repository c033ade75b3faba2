from __future__ import annotations

def _pick_glsl_version(ctx_version_code: int) -> int:
    """Pick a GLSL version compatible with the active OpenGL context.

    - For OpenGL >= 3.3: use GLSL 330
    - For OpenGL >= 3.2: use GLSL 150
    """
    if ctx_version_code >= 330:
        return 330
    return 150

_TERRAIN_VERT = """
in vec3 in_pos;
in vec3 in_norm;

uniform mat4 u_proj;
uniform mat4 u_view;

out vec3 v_world_pos;
out vec3 v_norm;

void main() {
    v_world_pos = in_pos;
    v_norm = in_norm;
    gl_Position = u_proj * u_view * vec4(in_pos, 1.0);
}
"""

_TERRAIN_FRAG = """in vec3 v_world_pos;
in vec3 v_norm;

uniform vec3 u_light_dir;
uniform vec3 u_cam_pos;
uniform float u_fog_start;
uniform float u_fog_end;

out vec4 f_color;

vec3 height_color(float h) {
    // Low -> earthy, mid -> grass, high -> rock
    float t1 = smoothstep(-12.0, 0.0, h);
    float t2 = smoothstep(4.0, 16.0, h);
    vec3 low = vec3(0.36, 0.27, 0.18);
    vec3 mid = vec3(0.22, 0.45, 0.20);
    vec3 high = vec3(0.55, 0.55, 0.58);
    return mix(mix(low, mid, t1), high, t2);
}

void main() {
    vec3 n = normalize(v_norm);
    vec3 v = normalize(u_cam_pos - v_world_pos);
    // Flat patches are emitted in both windings; shade the side facing the camera.
    if (dot(n, v) < 0.0) {
        n = -n;
    }
    vec3 l = normalize(u_light_dir);
    float diff = max(dot(n, l), 0.0);

    vec3 col = height_color(v_world_pos.y) * (0.45 + 0.75 * diff);

    float dist = length(v_world_pos - u_cam_pos);
    float fog_amount = smoothstep(u_fog_start, u_fog_end, dist);
    col = mix(col, vec3(0.70, 0.80, 0.92), fog_amount);

    f_color = vec4(col, 1.0);
}"""

_POINT_VERT = """
in vec3 in_pos;

uniform mat4 u_proj;
uniform mat4 u_view;

void main() {
    gl_Position = u_proj * u_view * vec4(in_pos, 1.0);
    gl_PointSize = 4.0;
}
"""

_POINT_FRAG = """out vec4 f_color;

void main() {
    f_color = vec4(0.55, 0.55, 0.55, 1.0);
}"""


def shader_sources(ctx_version_code: int) -> tuple[str, str]:
    prefix = f"#version {_pick_glsl_version(ctx_version_code)}\n"
    return prefix + _TERRAIN_VERT, prefix + _TERRAIN_FRAG


def point_shader_sources(ctx_version_code: int) -> tuple[str, str]:
    prefix = f"#version {_pick_glsl_version(ctx_version_code)}\n"
    return prefix + _POINT_VERT, prefix + _POINT_FRAG
