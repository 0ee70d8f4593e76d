"""
glTF 2.0 loading for animated scene graphs.

Provides:
- GltfDocument: the decoded file (JSON + binary buffers) with accessor reads
- load_model(): the full load pipeline producing a ready-to-tick Model

Supports .gltf (external .bin files or base64 data URIs) and .glb. Only the
subset needed for animated rigid hierarchies is interpreted: node TRS/matrix,
mesh POSITION/NORMAL/TEXCOORD_0 with indices, base-color / metallic-roughness
/ normal textures, and translation/rotation/scale animation channels.
"""

from typing import Any, Dict, List, Optional, Union
from pathlib import Path
import base64
import json
import logging
from urllib.parse import unquote

import numpy as np

from ..core.base import RenderBackend
from ..core.constants import (
    ACCESSOR_COMPONENT_COUNTS,
    COMPONENT_DTYPES,
    GLB_CHUNK_BIN,
    GLB_CHUNK_JSON,
    GLB_MAGIC,
)
from ..core.exceptions import AssetReadError, SceneLoadError
from ..utils.config import Config

logger = logging.getLogger(__name__)


# =============================================================================
# Document
# =============================================================================

class GltfDocument:
    """
    A parsed glTF asset: the JSON tree plus its binary buffers.

    Nothing here knows about scene nodes or animation; it only answers
    "what does accessor N contain".
    """

    def __init__(
        self,
        gltf: Dict[str, Any],
        buffers: Optional[List[bytes]] = None,
        base_path: Optional[Union[str, Path]] = None
    ):
        """
        Args:
            gltf: Parsed JSON tree
            buffers: Bytes of every entry in gltf['buffers'], in order
            base_path: Directory used to resolve relative image URIs
        """
        self.gltf = gltf
        self.buffers = list(buffers or [])
        self.base_path = Path(base_path) if base_path is not None else None

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'GltfDocument':
        """
        Read a .gltf or .glb file.

        Raises:
            AssetReadError: If the file is missing, unreadable or malformed
        """
        path = Path(path)
        if not path.exists():
            raise AssetReadError(f"glTF file not found: {path}")

        try:
            data = path.read_bytes()
        except OSError as e:
            raise AssetReadError(f"Could not read {path}: {e}") from e

        if path.suffix.lower() == '.glb' or data[:4] == b'glTF':
            return cls.from_glb_bytes(data, base_path=path.parent)

        try:
            gltf = json.loads(data.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise AssetReadError(f"Invalid glTF JSON in {path}: {e}") from e

        return cls.from_json(gltf, base_path=path.parent)

    @classmethod
    def from_json(
        cls,
        gltf: Dict[str, Any],
        base_path: Optional[Union[str, Path]] = None,
        embedded: Optional[bytes] = None
    ) -> 'GltfDocument':
        """
        Build a document from a JSON tree, resolving buffer URIs.

        Args:
            gltf: Parsed JSON tree
            base_path: Directory for relative URIs
            embedded: GLB BIN chunk, used by the buffer without a URI
        """
        base = Path(base_path) if base_path is not None else None
        buffers = []
        for i, buffer_info in enumerate(gltf.get('buffers', [])):
            uri = buffer_info.get('uri')
            if uri is None:
                if embedded is None:
                    raise AssetReadError(f"Buffer {i} has no URI and no embedded binary chunk")
                buffers.append(embedded)
            else:
                buffers.append(_read_uri(uri, base))

            declared = buffer_info.get('byteLength')
            if declared is not None and len(buffers[-1]) < declared:
                raise AssetReadError(
                    f"Buffer {i} holds {len(buffers[-1])} bytes, expected {declared}"
                )

        return cls(gltf, buffers, base_path=base)

    @classmethod
    def from_glb_bytes(
        cls,
        data: bytes,
        base_path: Optional[Union[str, Path]] = None
    ) -> 'GltfDocument':
        """Parse a binary glTF container."""
        if len(data) < 20:
            raise AssetReadError("GLB data too short")

        magic, version, length = np.frombuffer(data, dtype='<u4', count=3)
        if magic != GLB_MAGIC:
            raise AssetReadError("Not a GLB file (bad magic)")
        if version != 2:
            raise AssetReadError(f"Unsupported GLB version {version}")
        if length > len(data):
            raise AssetReadError(f"GLB declares {length} bytes but only {len(data)} present")

        gltf = None
        embedded = None
        offset = 12
        while offset + 8 <= length:
            chunk_length, chunk_type = np.frombuffer(data, dtype='<u4', count=2, offset=offset)
            chunk = data[offset + 8:offset + 8 + int(chunk_length)]
            if chunk_type == GLB_CHUNK_JSON:
                try:
                    gltf = json.loads(chunk.decode('utf-8'))
                except (UnicodeDecodeError, json.JSONDecodeError) as e:
                    raise AssetReadError(f"Invalid GLB JSON chunk: {e}") from e
            elif chunk_type == GLB_CHUNK_BIN and embedded is None:
                embedded = bytes(chunk)
            offset += 8 + int(chunk_length)

        if gltf is None:
            raise AssetReadError("GLB file has no JSON chunk")

        return cls.from_json(gltf, base_path=base_path, embedded=embedded)

    # -------------------------------------------------------------------------
    # Top-level arrays
    # -------------------------------------------------------------------------

    @property
    def nodes(self) -> List[Dict[str, Any]]:
        return self.gltf.get('nodes', [])

    @property
    def meshes(self) -> List[Dict[str, Any]]:
        return self.gltf.get('meshes', [])

    @property
    def scenes(self) -> List[Dict[str, Any]]:
        return self.gltf.get('scenes', [])

    @property
    def default_scene(self) -> Optional[int]:
        return self.gltf.get('scene')

    @property
    def accessors(self) -> List[Dict[str, Any]]:
        return self.gltf.get('accessors', [])

    @property
    def buffer_views(self) -> List[Dict[str, Any]]:
        return self.gltf.get('bufferViews', [])

    @property
    def materials(self) -> List[Dict[str, Any]]:
        return self.gltf.get('materials', [])

    @property
    def textures(self) -> List[Dict[str, Any]]:
        return self.gltf.get('textures', [])

    @property
    def images(self) -> List[Dict[str, Any]]:
        return self.gltf.get('images', [])

    @property
    def animations(self) -> List[Dict[str, Any]]:
        return self.gltf.get('animations', [])

    # -------------------------------------------------------------------------
    # Data access
    # -------------------------------------------------------------------------

    def accessor(self, index: int) -> Dict[str, Any]:
        """Accessor record by index."""
        if index is None or not 0 <= index < len(self.accessors):
            raise AssetReadError(f"Accessor {index} does not exist")
        return self.accessors[index]

    def buffer_view_bytes(self, index: int) -> bytes:
        """Raw bytes covered by a buffer view."""
        if not 0 <= index < len(self.buffer_views):
            raise AssetReadError(f"Buffer view {index} does not exist")
        view = self.buffer_views[index]
        buffer_index = view.get('buffer', 0)
        if not 0 <= buffer_index < len(self.buffers):
            raise AssetReadError(f"Buffer {buffer_index} does not exist")
        start = view.get('byteOffset', 0)
        end = start + view['byteLength']
        data = self.buffers[buffer_index]
        if end > len(data):
            raise AssetReadError(f"Buffer view {index} exceeds its buffer")
        return data[start:end]

    def read_accessor(self, index: int) -> np.ndarray:
        """
        Decode an accessor into a (count, components) array.

        Normalized integer accessors are converted to float32 in [0, 1]
        (or [-1, 1] for signed types). Accessors without a buffer view read
        as zeros.

        Args:
            index: Accessor index

        Returns:
            Array of shape (count, components)

        Raises:
            AssetReadError: On unknown types, sparse storage or out-of-range reads
        """
        accessor = self.accessor(index)

        if 'sparse' in accessor:
            raise AssetReadError(f"Accessor {index} uses sparse storage, which is not supported")

        component_type = accessor.get('componentType')
        dtype = COMPONENT_DTYPES.get(component_type)
        if dtype is None:
            raise AssetReadError(f"Accessor {index} has unknown component type {component_type}")

        accessor_type = accessor.get('type')
        components = ACCESSOR_COMPONENT_COUNTS.get(accessor_type)
        if components is None:
            raise AssetReadError(f"Accessor {index} has unknown type {accessor_type}")

        count = accessor.get('count', 0)
        if 'bufferView' not in accessor:
            return np.zeros((count, components), dtype=dtype)

        view_index = accessor["bufferView"]
        if not 0 <= view_index < len(self.buffer_views):
            raise AssetReadError(f"Accessor {index} references missing buffer view {view_index}")
        view = self.buffer_views[view_index]

        buffer_index = view.get('buffer', 0)
        if not 0 <= buffer_index < len(self.buffers):
            raise AssetReadError(f"Accessor {index} references missing buffer {buffer_index}")
        data = self.buffers[buffer_index]

        itemsize = np.dtype(dtype).itemsize
        element_size = itemsize * components
        stride = view.get('byteStride') or element_size
        offset = view.get('byteOffset', 0) + accessor.get('byteOffset', 0)

        end = offset + stride * (count - 1) + element_size if count > 0 else offset
        if end > len(data):
            raise AssetReadError(
                f"Accessor {index} reads past the end of buffer {buffer_index} "
                f"({end} > {len(data)})"
            )

        if count == 0:
            values = np.zeros((0, components), dtype=dtype)
        else:
            values = np.ndarray(
                shape=(count, components),
                dtype=dtype,
                buffer=data,
                offset=offset,
                strides=(stride, itemsize),
            ).copy()

        if accessor.get('normalized') and np.issubdtype(values.dtype, np.integer):
            info = np.iinfo(values.dtype)
            values = np.maximum(values.astype(np.float32) / info.max, -1.0).astype(np.float32)

        return values

    def image_bytes(self, index: int) -> bytes:
        """Encoded bytes (PNG/JPEG) of an image, from its URI or buffer view."""
        if not 0 <= index < len(self.images):
            raise AssetReadError(f"Image {index} does not exist")
        image = self.images[index]
        if 'bufferView' in image:
            return self.buffer_view_bytes(image['bufferView'])
        if 'uri' in image:
            return _read_uri(image['uri'], self.base_path)
        raise AssetReadError(f"Image {index} has neither a URI nor a buffer view")


def _read_uri(uri: str, base_path: Optional[Path]) -> bytes:
    """Resolve a data: URI or a path relative to the asset."""
    if uri.startswith('data:'):
        header, _, payload = uri.partition(',')
        if not header.endswith(';base64'):
            raise AssetReadError(f"Only base64 data URIs are supported, got '{header}'")
        try:
            return base64.b64decode(payload)
        except ValueError as e:
            raise AssetReadError(f"Invalid base64 data URI: {e}") from e

    path = Path(unquote(uri))
    if base_path is not None and not path.is_absolute():
        path = base_path / path
    if not path.exists():
        raise AssetReadError(f"Referenced file not found: {path}")
    try:
        return path.read_bytes()
    except OSError as e:
        raise AssetReadError(f"Could not read {path}: {e}") from e


# =============================================================================
# Main Loading Function
# =============================================================================

def load_model(
    path: Union[str, Path, GltfDocument],
    config: Optional[Config] = None,
    backend: Optional[RenderBackend] = None
):
    """
    Load a glTF asset into a Model.

    The whole load either succeeds or fails: images, materials, the node
    tree, geometry and animations are all decoded before anything reaches
    the backend.

    Args:
        path: Path to a .gltf/.glb file, or an already parsed GltfDocument
        config: Loading/playback configuration
        backend: If given, geometry and node regions are uploaded to it

    Returns:
        Model

    Raises:
        SceneLoadError: (or a subclass) if any fatal condition is hit

    Example:
        >>> model = load_model('scenes/drone.gltf', backend=HostBackend())
        >>> model.tick(1.0 / 60.0)
        >>> for cmd in model.draw_commands():
        ...     draw(cmd.first_index, cmd.index_count, cmd.binding)
    """
    from ..scene.builder import SceneGraphBuilder
    from ..scene.geometry import GeometryAssembler
    from ..scene.materials import load_images, load_materials, load_textures
    from ..scene.model import Model
    from ..animation.store import AnimationStore

    config = config if config is not None else Config()
    source = path if isinstance(path, GltfDocument) else Path(path)

    try:
        if isinstance(source, GltfDocument):
            document = source
            logger.info("Loading model from parsed glTF document")
        else:
            logger.info(f"Loading model from glTF: {source}")
            document = GltfDocument.from_file(source)

        images = load_images(document) if config.load_images else []
        textures = load_textures(document)
        materials = load_materials(document)
        logger.info(f"Loaded {len(images)} images, {len(textures)} textures, {len(materials)} materials")

        assembler = GeometryAssembler(vertex_color=config.vertex_color)
        builder = SceneGraphBuilder(
            document,
            assembler,
            strict_transforms=config.strict_transforms,
            device=config.device,
        )
        graph = builder.build_scene(config.scene)
        vertices, indices = assembler.finalize()
        logger.info(
            f"Built scene: {len(graph)} nodes, {len(graph.renderable)} renderable, "
            f"{vertices.shape[0]} vertices, {indices.shape[0]} indices"
        )

        store = AnimationStore(
            document,
            graph.index,
            validate_keyframes=config.validate_keyframes,
            device=config.device,
        )
        animations = store.decode_all()
        for anim in animations:
            logger.info(
                f"Loaded animation '{anim.name}': {len(anim.channels)} channels, "
                f"time range [{anim.start:.3f}, {anim.end:.3f}]"
            )

    except SceneLoadError as e:
        logger.error(f"Failed to load {source if not isinstance(source, GltfDocument) else 'document'}: {e}")
        raise

    model = Model(
        graph=graph,
        vertices=vertices,
        indices=indices,
        materials=materials,
        textures=textures,
        images=images,
        animations=animations,
        active_animation=config.active_animation,
    )

    if backend is not None:
        model.prepare(backend)

    return model
