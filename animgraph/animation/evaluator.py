"""
Per-frame keyframe evaluation.

One animation is active at a time. Each tick advances its clock, wraps it,
and writes interpolated translation / rotation / scale values into the
channels' target nodes. Degraded conditions (bad selector, unsupported
interpolation) skip work for the frame and are logged once.
"""

from typing import Hashable, List, Optional, Sequence, Set, Tuple
import logging

import torch

from ..utils.quaternion import normalize_quaternion, quaternion_from_xyzw, quaternion_slerp
from .types import Animation, AnimationChannel, AnimationSampler, Interpolation, TargetProperty

logger = logging.getLogger(__name__)


def find_segment(times: torch.Tensor, t: float) -> Optional[Tuple[int, float]]:
    """
    Locate the keyframe pair enclosing a time.

    Every adjacent pair [t_i, t_i+1] with t_i <= t <= t_i+1 matches; when
    several do (t sits exactly on a shared keyframe) the last one is used.

    Args:
        times: (T,) keyframe times
        t: Query time

    Returns:
        (i, a) with blend factor a in [0, 1], or None if no pair encloses t
    """
    if times.shape[0] < 2:
        return None

    mask = (times[:-1] <= t) & (t <= times[1:])
    matches = torch.nonzero(mask, as_tuple=False)
    if matches.numel() == 0:
        return None

    i = int(matches[-1, 0])
    # blend at keyframe precision so a query on a keyframe lands on 0 or 1
    t = float(torch.tensor(t, dtype=times.dtype))
    t0 = float(times[i])
    t1 = float(times[i + 1])
    a = (t - t0) / (t1 - t0) if t1 > t0 else 0.0
    return i, min(max(a, 0.0), 1.0)


class AnimationEvaluator:
    """
    Drives the active animation of a model.

    Example:
        >>> evaluator = AnimationEvaluator()
        >>> if evaluator.tick(model.animations, 0, 1.0 / 60.0):
        ...     refresh_world_matrices()
    """

    def __init__(self):
        self._reported: Set[Hashable] = set()

    def _report_once(self, key: Hashable, message: str) -> None:
        if key in self._reported:
            return
        self._reported.add(key)
        logger.warning(message)

    def tick(
        self,
        animations: Sequence[Animation],
        active_index: Optional[int],
        delta_time: float
    ) -> bool:
        """
        Advance and apply the active animation.

        The clock wraps by subtracting `end` once it passes `end`.

        Args:
            animations: All animations of the model
            active_index: Selected animation, or None
            delta_time: Seconds since the previous tick

        Returns:
            True if the animation was applied, False for a no-op frame
        """
        if active_index is None or not 0 <= active_index < len(animations):
            self._report_once(
                ('selector', active_index),
                f"Active animation {active_index} is out of range "
                f"(model has {len(animations)} animations); playback skipped",
            )
            return False

        animation = animations[active_index]
        if not animation.has_content:
            self._report_once(
                ('empty', id(animation)),
                f"Animation '{animation.name}' has no keyframes; playback skipped",
            )
            return False

        animation.current_time += delta_time
        if animation.current_time > animation.end:
            animation.current_time -= animation.end

        self.evaluate_at(animation, animation.current_time)
        return True

    def evaluate_at(self, animation: Animation, time: float) -> List[AnimationChannel]:
        """
        Apply every channel of an animation at an absolute time.

        The animation clock is not touched. Channels with no enclosing
        keyframe pair leave their target unchanged.

        Returns:
            Channels that wrote to their target node
        """
        updated = []
        for channel_idx, channel in enumerate(animation.channels):
            sampler = animation.samplers[channel.sampler_index]

            if sampler.interpolation != Interpolation.LINEAR:
                self._report_once(
                    ('interpolation', id(animation), channel_idx),
                    f"Animation '{animation.name}' channel {channel_idx}: "
                    f"{sampler.interpolation.value} interpolation is not supported, channel skipped",
                )
                continue

            if self._apply_channel(channel, sampler, time):
                updated.append(channel)

        return updated

    def _apply_channel(self, channel: AnimationChannel, sampler: AnimationSampler, time: float) -> bool:
        segment = find_segment(sampler.input_times, time)
        if segment is None:
            return False

        i, a = segment
        v0 = sampler.output_values[i]
        v1 = sampler.output_values[i + 1]
        node = channel.target_node

        if channel.target_property == TargetProperty.ROTATION:
            q0 = quaternion_from_xyzw(v0)
            q1 = quaternion_from_xyzw(v1)
            rotation = normalize_quaternion(quaternion_slerp(q0, q1, a))
            node.rotation = rotation.to(node.rotation.device)
        else:
            value = torch.lerp(v0[:3], v1[:3], a).to(node.translation.device)
            if channel.target_property == TargetProperty.TRANSLATION:
                node.translation = value
            else:
                node.scale = value

        return True
