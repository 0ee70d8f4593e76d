"""
Asset loading for animgraph.

Reads .gltf and .glb files and runs the full load pipeline.
"""

from .gltf_loader import (
    GltfDocument,
    load_model,
)

__all__ = [
    "GltfDocument",
    "load_model",
]
