"""
Configuration management for animgraph.

Provides the loader/playback configuration and JSON persistence helpers.
"""

import json
from dataclasses import dataclass, field, asdict
from typing import Optional, Dict, Any, List
from pathlib import Path

from ..core.constants import DEFAULT_VERTEX_COLOR


@dataclass
class Config:
    """
    Configuration for scene loading and animation playback.

    Attributes:
        # Loading
        scene: Scene index to instantiate (None = file's default scene)
        strict_transforms: Reject nodes that declare both a matrix and TRS
        validate_keyframes: Fail the load on non-ascending keyframe times
        load_images: Decode images referenced by the file
        vertex_color: RGBA color written to every vertex

        # Playback
        active_animation: Index of the animation driven by Model.tick()

        # Device
        device: Torch device for transform state ('cpu', 'cuda', 'mps')
    """

    # Loading
    scene: Optional[int] = None
    strict_transforms: bool = True
    validate_keyframes: bool = False
    load_images: bool = True
    vertex_color: List[float] = field(default_factory=lambda: list(DEFAULT_VERTEX_COLOR))

    # Playback
    active_animation: Optional[int] = 0

    # Device
    device: str = 'cpu'

    # Additional fields
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'Config':
        """Create config from dictionary."""
        known_fields = {f.name for f in cls.__dataclass_fields__.values()}
        known_kwargs = {k: v for k, v in config_dict.items() if k in known_fields and k != 'extra'}
        extra_kwargs = {k: v for k, v in config_dict.items() if k not in known_fields}
        extra_kwargs.update(config_dict.get('extra', {}))

        config = cls(**known_kwargs)
        config.extra = extra_kwargs
        return config

    def update(self, **kwargs) -> 'Config':
        """Return a new config with updated values."""
        config_dict = self.to_dict()
        config_dict.update(kwargs)
        return Config.from_dict(config_dict)


def load_config(filepath: str) -> Config:
    """
    Load configuration from JSON file.

    Args:
        filepath: Path to JSON config file

    Returns:
        Config object
    """
    filepath = Path(filepath)
    with open(filepath, 'r') as f:
        config_dict = json.load(f)
    return Config.from_dict(config_dict)


def save_config(config: Config, filepath: str) -> None:
    """
    Save configuration to JSON file.

    Args:
        config: Config object to save
        filepath: Output file path
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    with open(filepath, 'w') as f:
        json.dump(config.to_dict(), f, indent=2)
