"""
Exceptions raised while loading a scene.

Every fatal load condition derives from SceneLoadError so callers can treat
a failed load as a single failure. Per-frame conditions never raise.
"""


class SceneLoadError(Exception):
    """Base exception for scene loading errors."""
    pass


class AssetReadError(SceneLoadError):
    """The asset file could not be read or uses an unsupported layout."""
    pass


class GeometryError(SceneLoadError):
    """Error assembling vertex or index data for a primitive."""
    pass


class SceneGraphError(SceneLoadError):
    """Error building the node hierarchy."""
    pass


class AnimationLoadError(SceneLoadError):
    """Error decoding animation samplers or channels."""
    pass
