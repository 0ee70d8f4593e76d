"""
Keyframe animation data.

Samplers hold keyframe times and values as float32 tensors. Output values
are always (N, 4): 3-vector channels are padded with a zero 4th component,
rotations keep the source's (x, y, z, w) order until evaluation.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, List, Optional
import math

import torch

if TYPE_CHECKING:
    from ..scene.node import SceneNode


class Interpolation(Enum):
    """Keyframe interpolation modes. Only LINEAR is evaluated."""
    LINEAR = 'LINEAR'
    STEP = 'STEP'
    CUBICSPLINE = 'CUBICSPLINE'


class TargetProperty(Enum):
    """Node field driven by a channel."""
    TRANSLATION = 'translation'
    ROTATION = 'rotation'
    SCALE = 'scale'


@dataclass
class AnimationSampler:
    """Keyframe times and values for one animated property."""
    interpolation: Interpolation
    input_times: torch.Tensor     # (T,)
    output_values: torch.Tensor   # (N, 4)


@dataclass
class AnimationChannel:
    """Binds a sampler to one property of one node."""
    target_property: TargetProperty
    target_node: 'SceneNode'
    sampler_index: int


@dataclass
class Animation:
    """
    A named set of channels played together.

    Attributes:
        name: Animation name
        samplers: Keyframe data, referenced by channels
        channels: Property bindings
        start: Earliest keyframe time (+inf when there are no keyframes)
        end: Latest keyframe time (-inf when there are no keyframes)
        current_time: Playback clock, advanced by the evaluator
    """
    name: str
    samplers: List[AnimationSampler] = field(default_factory=list)
    channels: List[AnimationChannel] = field(default_factory=list)
    start: float = math.inf
    end: float = -math.inf
    current_time: float = 0.0

    @property
    def has_content(self) -> bool:
        return self.start <= self.end

    @property
    def duration(self) -> Optional[float]:
        if not self.has_content:
            return None
        return self.end - self.start

    def include_times(self, times: torch.Tensor) -> None:
        """Widen the time range to cover a sampler's keyframe times."""
        if times.numel() == 0:
            return
        self.start = min(self.start, float(times.min()))
        self.end = max(self.end, float(times.max()))
