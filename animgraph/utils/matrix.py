"""
Homogeneous 4x4 matrix helpers.

Matrices act on column vectors: a point p maps to M @ [p, 1]. glTF stores
matrices column-major as 16 floats; matrix_from_column_major() and
matrix_to_column_major() convert at the file and GPU boundaries.
"""

from typing import Sequence
import numpy as np
import torch

from ..core.types import Matrix4, Quaternion, Vector3
from .quaternion import quaternion_to_matrix


def translation_matrix(translation: torch.Tensor) -> torch.Tensor:
    """
    Build a translation matrix.

    Args:
        translation: (3,) offset

    Returns:
        (4, 4) matrix
    """
    m = torch.eye(4, device=translation.device, dtype=translation.dtype)
    m[:3, 3] = translation[:3]
    return m


def rotation_matrix(quaternion: torch.Tensor) -> torch.Tensor:
    """
    Build a rotation matrix from a [w, x, y, z] quaternion.

    Args:
        quaternion: (4,) rotation

    Returns:
        (4, 4) matrix
    """
    m = torch.eye(4, device=quaternion.device, dtype=quaternion.dtype)
    m[:3, :3] = quaternion_to_matrix(quaternion)
    return m


def scale_matrix(scale: torch.Tensor) -> torch.Tensor:
    """
    Build a non-uniform scale matrix.

    Args:
        scale: (3,) per-axis factors

    Returns:
        (4, 4) matrix
    """
    m = torch.eye(4, device=scale.device, dtype=scale.dtype)
    m[0, 0] = scale[0]
    m[1, 1] = scale[1]
    m[2, 2] = scale[2]
    return m


def compose_trs(
    translation: Vector3,
    rotation: Quaternion,
    scale: Vector3
) -> Matrix4:
    """
    Compose T @ R @ S.

    Args:
        translation: (3,)
        rotation: (4,) [w, x, y, z]
        scale: (3,)

    Returns:
        (4, 4) matrix
    """
    return translation_matrix(translation) @ rotation_matrix(rotation) @ scale_matrix(scale)


def matrix_from_column_major(values: Sequence[float], dtype: torch.dtype = torch.float32) -> torch.Tensor:
    """Convert 16 column-major floats (glTF layout) to a (4, 4) tensor."""
    values = np.asarray(values, dtype=np.float64)
    if values.size != 16:
        raise ValueError(f"Expected 16 matrix components, got {values.size}")
    return torch.as_tensor(values.reshape(4, 4).T.copy(), dtype=dtype)


def matrix_to_column_major(matrix: torch.Tensor) -> np.ndarray:
    """Flatten a (4, 4) tensor to 16 column-major float32 values."""
    return matrix.detach().cpu().T.contiguous().numpy().astype(np.float32).reshape(-1)


def transform_points(matrix: torch.Tensor, points: torch.Tensor) -> torch.Tensor:
    """
    Apply a homogeneous transform to points.

    Args:
        matrix: (4, 4)
        points: (..., 3)

    Returns:
        Transformed points (..., 3)
    """
    ones = torch.ones(*points.shape[:-1], 1, device=points.device, dtype=points.dtype)
    homo = torch.cat([points, ones], dim=-1)
    transformed = homo @ matrix.to(points.dtype).T
    return transformed[..., :3] / transformed[..., 3:4]
