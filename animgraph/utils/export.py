"""
Export of posed scene snapshots.

Bakes every renderable node's current world matrix into its primitives'
vertices and writes the result as a single mesh via trimesh.
"""

from typing import Union
from pathlib import Path
import logging

import numpy as np
import torch

logger = logging.getLogger(__name__)


def posed_vertices(model) -> np.ndarray:
    """
    World-space positions for the whole vertex sequence at the current pose.

    Vertices not referenced by any renderable node keep their source position.

    Returns:
        (V, 3) float32 array
    """
    positions = np.array(model.vertices['position'], dtype=np.float32)

    for node_index, matrix in model.world_matrices().items():
        node = model.graph.node(node_index)
        for primitive in node.primitives:
            start = primitive.vertex_start
            end = start + primitive.vertex_count
            points = torch.as_tensor(positions[start:end], dtype=matrix.dtype)
            positions[start:end] = (
                (points @ matrix[:3, :3].T + matrix[:3, 3]).detach().cpu().numpy()
            )

    return positions


def posed_mesh(model):
    """
    Build a trimesh.Trimesh of the model at its current pose.

    Args:
        model: Loaded Model

    Returns:
        trimesh.Trimesh with one face per index triple
    """
    import trimesh

    if model.indices.shape[0] % 3 != 0:
        raise ValueError(
            f"Index count {model.indices.shape[0]} is not a multiple of 3; "
            f"only triangle lists can be exported"
        )

    vertices = posed_vertices(model)
    faces = np.asarray(model.indices, dtype=np.int64).reshape(-1, 3)
    colors = np.clip(model.vertices['color'] * 255.0, 0, 255).astype(np.uint8)

    return trimesh.Trimesh(
        vertices=vertices,
        faces=faces,
        vertex_colors=colors,
        process=False,
    )


def save_posed_mesh(model, path: Union[str, Path], file_type: str = None) -> Path:
    """
    Write the model at its current pose to a mesh file (.obj, .ply, .stl, ...).

    Args:
        model: Loaded Model
        path: Output path
        file_type: Optional explicit file type

    Returns:
        The written path
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    mesh = posed_mesh(model)
    mesh.export(str(path), file_type=file_type)
    logger.info(f"Saved posed mesh ({len(mesh.vertices)} vertices, {len(mesh.faces)} faces) to {path}")
    return path
