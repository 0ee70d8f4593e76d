"""
Example 01: Headless Animated Playback

Demonstrates the frame loop a renderer runs against a loaded model:
1. Loading a glTF/GLB asset (or a small built-in spinning quad)
2. Registering geometry and per-node regions with a HostBackend
3. Ticking the active animation at a fixed frame rate
4. Issuing draw commands and reading back world matrices
5. Exporting the final pose as a mesh

Usage:
    python examples/01_animated_playback.py [path/to/scene.gltf]

Output files:
- output/01_final_pose.ply - Scene baked at its last evaluated pose
"""

import base64
import logging
import sys
from pathlib import Path

import numpy as np

from animgraph import Config, GltfDocument, load_model
from animgraph.core import HostBackend
from animgraph.utils import save_posed_mesh


# =============================================================================
# 1. Configuration
# =============================================================================

PROJECT_ROOT = Path(__file__).parent.parent
OUTPUT_DIR = PROJECT_ROOT / "output"

FRAME_RATE = 60.0
NUM_FRAMES = 180
REPORT_EVERY = 30


def build_demo_document() -> GltfDocument:
    """A unit quad that slides along x and turns about z over two seconds."""
    positions = np.array([[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]], dtype=np.float32)
    indices = np.array([0, 1, 2, 0, 2, 3], dtype=np.uint16)
    times = np.array([0.0, 1.0, 2.0], dtype=np.float32)
    translations = np.array([[0, 0, 0], [2, 0, 0], [0, 0, 0]], dtype=np.float32)
    half = np.sqrt(0.5)
    rotations = np.array([[0, 0, 0, 1], [0, 0, half, half], [0, 0, 1, 0]], dtype=np.float32)

    chunks = [positions.tobytes(), indices.tobytes(), times.tobytes(),
              translations.tobytes(), rotations.tobytes()]
    views, offset = [], 0
    for chunk in chunks:
        views.append({'buffer': 0, 'byteOffset': offset, 'byteLength': len(chunk)})
        offset += len(chunk)
    blob = b''.join(chunks)

    gltf = {
        'asset': {'version': '2.0'},
        'buffers': [{
            'byteLength': len(blob),
            'uri': 'data:application/octet-stream;base64,' + base64.b64encode(blob).decode('ascii'),
        }],
        'bufferViews': views,
        'accessors': [
            {'bufferView': 0, 'componentType': 5126, 'count': 4, 'type': 'VEC3'},
            {'bufferView': 1, 'componentType': 5123, 'count': 6, 'type': 'SCALAR'},
            {'bufferView': 2, 'componentType': 5126, 'count': 3, 'type': 'SCALAR'},
            {'bufferView': 3, 'componentType': 5126, 'count': 3, 'type': 'VEC3'},
            {'bufferView': 4, 'componentType': 5126, 'count': 3, 'type': 'VEC4'},
        ],
        'meshes': [{'primitives': [{'attributes': {'POSITION': 0}, 'indices': 1}]}],
        'nodes': [{'name': 'quad', 'mesh': 0}],
        'scenes': [{'nodes': [0]}],
        'scene': 0,
        'animations': [{
            'name': 'slide_and_turn',
            'samplers': [{'input': 2, 'output': 3}, {'input': 2, 'output': 4}],
            'channels': [
                {'sampler': 0, 'target': {'node': 0, 'path': 'translation'}},
                {'sampler': 1, 'target': {'node': 0, 'path': 'rotation'}},
            ],
        }],
    }
    return GltfDocument.from_json(gltf)


# =============================================================================
# 2. Main
# =============================================================================

def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)

    source = Path(sys.argv[1]) if len(sys.argv) > 1 else build_demo_document()
    backend = HostBackend()
    model = load_model(source, Config(active_animation=0), backend=backend)
    print(model)

    if model.animations:
        for i, animation in enumerate(model.animations):
            print(f"  [{i}] {animation.name}: {len(animation.channels)} channels, "
                  f"{animation.start:.2f}s - {animation.end:.2f}s")

    dt = 1.0 / FRAME_RATE
    for frame in range(NUM_FRAMES):
        model.tick(dt)
        commands = list(model.draw_commands())

        if frame % REPORT_EVERY == 0:
            print(f"\nFrame {frame}: {len(commands)} draw calls")
            for cmd in commands:
                matrix = backend.read_matrix(cmd.binding)
                print(f"  node {cmd.node_index}: indices [{cmd.first_index}, "
                      f"{cmd.first_index + cmd.index_count}) "
                      f"origin -> {np.round(matrix[:3, 3], 3)}")

    out_path = save_posed_mesh(model, OUTPUT_DIR / "01_final_pose.ply")
    print(f"\nSaved final pose to {out_path}")

    model.close()


if __name__ == "__main__":
    main()
