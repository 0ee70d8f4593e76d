"""
Keyframe animation for animgraph.

Includes the animation data types, load-time decoding against a node tree
and per-frame evaluation.
"""

from .types import (
    Interpolation,
    TargetProperty,
    AnimationSampler,
    AnimationChannel,
    Animation,
)
from .store import AnimationStore
from .evaluator import (
    AnimationEvaluator,
    find_segment,
)

__all__ = [
    "Interpolation",
    "TargetProperty",
    "AnimationSampler",
    "AnimationChannel",
    "Animation",
    "AnimationStore",
    "AnimationEvaluator",
    "find_segment",
]
