"""
Load-time decoding of keyframe animations.

Each animation's samplers and channels are decoded once into tensors, and
channel targets are resolved to SceneNode objects through the NodeIndex so
the per-frame evaluator never looks anything up by index.
"""

from typing import TYPE_CHECKING, Any, Dict, List, Union
import logging

import numpy as np
import torch

from ..core.exceptions import AnimationLoadError, AssetReadError
from .types import (
    Animation,
    AnimationChannel,
    AnimationSampler,
    Interpolation,
    TargetProperty,
)

if TYPE_CHECKING:
    from ..scene.node import NodeIndex

logger = logging.getLogger(__name__)


class AnimationStore:
    """
    Decodes a document's animations against an already-built node tree.

    Example:
        >>> store = AnimationStore(document, graph.index)
        >>> animations = store.decode_all()
    """

    def __init__(
        self,
        document,
        node_index: 'NodeIndex',
        validate_keyframes: bool = False,
        device: Union[str, torch.device] = 'cpu'
    ):
        """
        Args:
            document: Parsed asset exposing `animations` and `read_accessor(i)`
            node_index: Lookup used to resolve channel targets
            validate_keyframes: Reject samplers whose times are not ascending
            device: Torch device for keyframe tensors
        """
        self.document = document
        self.node_index = node_index
        self.validate_keyframes = validate_keyframes
        self.device = torch.device(device) if isinstance(device, str) else device

    def __len__(self) -> int:
        return len(self.document.animations)

    def decode_all(self) -> List[Animation]:
        return [self.decode(i) for i in range(len(self))]

    def decode(self, animation_index: int) -> Animation:
        """
        Decode one animation.

        Args:
            animation_index: Index into the document's animation array

        Returns:
            Animation with resolved channels and its keyframe time range

        Raises:
            AnimationLoadError: On malformed sampler data or a channel
                whose target node does not exist in the tree
        """
        records = self.document.animations
        if not 0 <= animation_index < len(records):
            raise AnimationLoadError(f"Animation {animation_index} does not exist")
        record = records[animation_index]

        animation = Animation(name=record.get('name') or f'animation_{animation_index}')

        for sampler_idx, sampler_record in enumerate(record.get('samplers', [])):
            try:
                sampler = self._decode_sampler(sampler_record)
            except (AnimationLoadError, AssetReadError) as e:
                raise AnimationLoadError(
                    f"Animation '{animation.name}' sampler {sampler_idx}: {e}"
                ) from e
            animation.samplers.append(sampler)
            animation.include_times(sampler.input_times)

        for channel_idx, channel_record in enumerate(record.get('channels', [])):
            channel = self._decode_channel(animation, channel_idx, channel_record)
            if channel is not None:
                animation.channels.append(channel)

        if not animation.has_content:
            logger.warning(f"Animation '{animation.name}' has no keyframes")

        return animation

    # -------------------------------------------------------------------------
    # Samplers
    # -------------------------------------------------------------------------

    def _decode_sampler(self, record: Dict[str, Any]) -> AnimationSampler:
        mode = record.get('interpolation', Interpolation.LINEAR.value)
        try:
            interpolation = Interpolation(mode)
        except ValueError:
            raise AnimationLoadError(f"Unknown interpolation '{mode}'")

        times = self.document.read_accessor(record.get('input')).reshape(-1)
        values = self.document.read_accessor(record.get('output'))

        if values.shape[1] == 3:
            values = np.concatenate([values, np.zeros((values.shape[0], 1), dtype=values.dtype)], axis=1)
        elif values.shape[1] != 4:
            raise AnimationLoadError(
                f"Output values must be 3- or 4-component vectors, got {values.shape[1]} components"
            )

        required = times.shape[0] * 3 if interpolation == Interpolation.CUBICSPLINE else times.shape[0]
        if values.shape[0] < required:
            raise AnimationLoadError(
                f"{values.shape[0]} output values for {times.shape[0]} keyframes"
            )

        if self.validate_keyframes and times.shape[0] > 1 and np.any(np.diff(times) < 0):
            raise AnimationLoadError("Keyframe times are not in ascending order")

        return AnimationSampler(
            interpolation=interpolation,
            input_times=torch.as_tensor(times, dtype=torch.float32, device=self.device),
            output_values=torch.as_tensor(values, dtype=torch.float32, device=self.device),
        )

    # -------------------------------------------------------------------------
    # Channels
    # -------------------------------------------------------------------------

    def _decode_channel(
        self,
        animation: Animation,
        channel_idx: int,
        record: Dict[str, Any]
    ):
        target = record.get('target', {})
        path = target.get('path')

        try:
            target_property = TargetProperty(path)
        except ValueError:
            logger.warning(
                f"Animation '{animation.name}' channel {channel_idx}: "
                f"unsupported target path '{path}', skipping"
            )
            return None

        sampler_index = record.get('sampler')
        if not isinstance(sampler_index, int) or not 0 <= sampler_index < len(animation.samplers):
            raise AnimationLoadError(
                f"Animation '{animation.name}' channel {channel_idx} references "
                f"missing sampler {sampler_index}"
            )

        node_ref = target.get('node')
        node = self.node_index.lookup(node_ref) if node_ref is not None else None
        if node is None:
            raise AnimationLoadError(
                f"Animation '{animation.name}' channel {channel_idx} targets "
                f"node {node_ref}, which is not in the scene"
            )

        return AnimationChannel(
            target_property=target_property,
            target_node=node,
            sampler_index=sampler_index,
        )
