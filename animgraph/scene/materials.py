"""
Materials, textures and decoded images.

Only the base-color / metallic-roughness / normal texture triple is kept.
Images are decoded with Pillow into RGBA8 pixel arrays so a renderer can
upload them without caring about the source encoding.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple
import io
import logging

import numpy as np
from PIL import Image as PILImage, UnidentifiedImageError

from ..core.exceptions import AssetReadError

logger = logging.getLogger(__name__)


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class Image:
    """Decoded image as (H, W, 4) uint8 RGBA pixels."""
    width: int
    height: int
    pixels: np.ndarray
    name: Optional[str] = None


@dataclass
class Texture:
    """Reference from a material slot to an image."""
    image_index: Optional[int]


@dataclass
class Material:
    """
    Surface description of a primitive.

    Texture fields are indices into the model's texture list, or None
    when the slot is unused.
    """
    name: Optional[str] = None
    base_color_factor: Tuple[float, float, float, float] = (1.0, 1.0, 1.0, 1.0)
    base_color_texture: Optional[int] = None
    metallic_roughness_texture: Optional[int] = None
    normal_texture: Optional[int] = None
    metallic_factor: float = 1.0
    roughness_factor: float = 1.0
    extra: dict = field(default_factory=dict)


# =============================================================================
# Decoding
# =============================================================================

def expand_to_rgba(pixels: np.ndarray) -> np.ndarray:
    """
    Expand grayscale, gray+alpha or RGB pixels to RGBA.

    Missing alpha is filled with 255 (opaque).

    Args:
        pixels: (H, W), (H, W, 1), (H, W, 2), (H, W, 3) or (H, W, 4) uint8

    Returns:
        (H, W, 4) uint8 array
    """
    pixels = np.asarray(pixels, dtype=np.uint8)
    if pixels.ndim == 2:
        pixels = pixels[..., None]

    channels = pixels.shape[-1]
    if channels == 4:
        return pixels
    if channels == 3:
        rgb = pixels
        alpha = np.full(pixels.shape[:2] + (1,), 255, dtype=np.uint8)
    elif channels == 2:
        rgb = np.repeat(pixels[..., :1], 3, axis=-1)
        alpha = pixels[..., 1:2]
    elif channels == 1:
        rgb = np.repeat(pixels, 3, axis=-1)
        alpha = np.full(pixels.shape[:2] + (1,), 255, dtype=np.uint8)
    else:
        raise ValueError(f"Cannot expand {channels}-channel pixels to RGBA")

    return np.concatenate([rgb, alpha], axis=-1)


def decode_image(data: bytes, name: Optional[str] = None) -> Image:
    """
    Decode PNG/JPEG bytes into an RGBA Image.

    Raises:
        AssetReadError: If Pillow cannot identify or decode the data
    """
    try:
        with PILImage.open(io.BytesIO(data)) as pil_image:
            if pil_image.mode in ('L', 'LA', 'RGB', 'RGBA'):
                pixels = np.array(pil_image)
            else:
                pixels = np.array(pil_image.convert('RGBA'))
    except (UnidentifiedImageError, OSError) as e:
        raise AssetReadError(f"Could not decode image {name or ''}: {e}") from e

    pixels = expand_to_rgba(pixels)
    return Image(width=pixels.shape[1], height=pixels.shape[0], pixels=pixels, name=name)


def load_images(document) -> List[Image]:
    """Decode every image of a document, in file order."""
    images = []
    for i, record in enumerate(document.images):
        name = record.get('name') or record.get('uri') or f'image_{i}'
        if isinstance(name, str) and name.startswith('data:'):
            name = f'image_{i}'
        image = decode_image(document.image_bytes(i), name=name)
        logger.debug(f"Decoded image {i} ({image.width}x{image.height})")
        images.append(image)
    return images


def load_textures(document) -> List[Texture]:
    return [Texture(image_index=record.get('source')) for record in document.textures]


def load_materials(document) -> List[Material]:
    """
    Read the metallic-roughness material records of a document.

    Texture slots keep their texture index; everything beyond the
    base-color / metallic-roughness / normal triple is ignored.
    """
    materials = []
    for record in document.materials:
        pbr = record.get('pbrMetallicRoughness', {})
        factor = pbr.get('baseColorFactor', [1.0, 1.0, 1.0, 1.0])
        if len(factor) != 4:
            raise AssetReadError(
                f"Material '{record.get('name')}' baseColorFactor has {len(factor)} components"
            )

        materials.append(Material(
            name=record.get('name'),
            base_color_factor=tuple(float(v) for v in factor),
            base_color_texture=_texture_index(pbr.get('baseColorTexture')),
            metallic_roughness_texture=_texture_index(pbr.get('metallicRoughnessTexture')),
            normal_texture=_texture_index(record.get('normalTexture')),
            metallic_factor=float(pbr.get('metallicFactor', 1.0)),
            roughness_factor=float(pbr.get('roughnessFactor', 1.0)),
        ))
    return materials


def _texture_index(info) -> Optional[int]:
    if info is None:
        return None
    return info.get('index')
