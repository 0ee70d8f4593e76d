"""
Quaternion operations for node rotations.

Quaternions are represented as (w, x, y, z) where w is the scalar part
and (x, y, z) is the vector part. This follows the convention:
    q = w + xi + yj + zk

glTF files store rotations as (x, y, z, w); quaternion_from_xyzw() reorders
them at the file boundary.

All operations support batched inputs with shape (..., 4).
"""

from typing import Union
import torch
import torch.nn.functional as F

from ..core.constants import DEFAULT_EPS_NORM


def normalize_quaternion(q: torch.Tensor, eps: float = DEFAULT_EPS_NORM) -> torch.Tensor:
    """
    Normalize quaternion to unit length.

    Args:
        q: Quaternion tensor of shape (..., 4) as [w, x, y, z]
        eps: Small constant for numerical stability

    Returns:
        Normalized quaternion of shape (..., 4)
    """
    return F.normalize(q, p=2, dim=-1, eps=eps)


def quaternion_from_xyzw(q: torch.Tensor) -> torch.Tensor:
    """Reorder glTF (x, y, z, w) quaternion(s) to (w, x, y, z)."""
    return torch.cat([q[..., 3:4], q[..., 0:3]], dim=-1)


def quaternion_to_matrix(q: torch.Tensor) -> torch.Tensor:
    """
    Convert unit quaternion to 3x3 rotation matrix.

    Args:
        q: Unit quaternion of shape (..., 4) as [w, x, y, z]

    Returns:
        Rotation matrix of shape (..., 3, 3)
    """
    q = normalize_quaternion(q)
    w, x, y, z = q.unbind(dim=-1)

    r00 = 1 - 2 * (y * y + z * z)
    r01 = 2 * (x * y - z * w)
    r02 = 2 * (x * z + y * w)

    r10 = 2 * (x * y + z * w)
    r11 = 1 - 2 * (x * x + z * z)
    r12 = 2 * (y * z - x * w)

    r20 = 2 * (x * z - y * w)
    r21 = 2 * (y * z + x * w)
    r22 = 1 - 2 * (x * x + y * y)

    return torch.stack([
        torch.stack([r00, r01, r02], dim=-1),
        torch.stack([r10, r11, r12], dim=-1),
        torch.stack([r20, r21, r22], dim=-1),
    ], dim=-2)


def quaternion_slerp(
    q0: torch.Tensor,
    q1: torch.Tensor,
    t: Union[float, torch.Tensor]
) -> torch.Tensor:
    """
    Spherical linear interpolation between two quaternions.

    q(t) = sin((1-t)θ)/sin(θ) * q0 + sin(tθ)/sin(θ) * q1

    The shorter arc is taken (q and -q are the same rotation) and the result
    is renormalized, so repeated evaluation cannot drift off the unit sphere.

    Args:
        q0: Start quaternion of shape (..., 4)
        q1: End quaternion of shape (..., 4)
        t: Interpolation parameter in [0, 1], scalar or tensor

    Returns:
        Interpolated unit quaternion of shape (..., 4)
    """
    q0 = normalize_quaternion(q0)
    q1 = normalize_quaternion(q1)

    dot = (q0 * q1).sum(dim=-1, keepdim=True)

    # Shortest path
    q1 = torch.where(dot < 0, -q1, q1)
    dot = torch.abs(dot).clamp(max=1.0)

    theta = torch.acos(dot)

    t = torch.as_tensor(t, device=q0.device, dtype=q0.dtype)

    sin_theta = torch.sin(theta)

    # Nearly parallel: sin(theta) -> 0, fall back to linear weights
    small_angle_mask = sin_theta.abs() < 1e-6
    safe_sin = torch.where(small_angle_mask, torch.ones_like(sin_theta), sin_theta)

    s0 = torch.sin((1 - t) * theta) / safe_sin
    s1 = torch.sin(t * theta) / safe_sin

    s0 = torch.where(small_angle_mask, 1 - t, s0)
    s1 = torch.where(small_angle_mask, t, s1)

    return normalize_quaternion(s0 * q0 + s1 * q1)
