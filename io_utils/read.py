from __future__ import annotations

import base64
import io
from pathlib import Path
from typing import Union

import numpy as np
from PIL import Image, ImageOps

ImageInput = Union[bytes, bytearray, str, Path, Image.Image]


def load_image(source: ImageInput) -> Image.Image:
    """Load encoded bytes, a path or a PIL image as an upright RGBA image.

    Raises
    ------
    PIL.UnidentifiedImageError
        If the bytes are not a decodable image.
    OSError
        If the file cannot be read.
    """
    if isinstance(source, Image.Image):
        img = source
    elif isinstance(source, (bytes, bytearray)):
        img = Image.open(io.BytesIO(bytes(source)))
        img.load()
    else:
        with Image.open(Path(source)) as opened:
            opened.load()
            img = opened.copy()
    # Phone cameras store orientation in EXIF rather than rotating pixels.
    img = ImageOps.exif_transpose(img) or img
    return img.convert("RGBA")


def to_pixels(image: Image.Image) -> np.ndarray:
    """Return the ``H x W x 4`` RGBA array of ``image``."""
    return np.array(image.convert("RGBA"), dtype=np.uint8)


def encode_image(image: Image.Image, fmt: str = "JPEG", quality: int = 90) -> bytes:
    """Encode ``image`` to bytes; JPEG drops the alpha channel."""
    buf = io.BytesIO()
    if fmt.upper() == "JPEG":
        image.convert("RGB").save(buf, format="JPEG", quality=quality)
    else:
        image.save(buf, format=fmt)
    return buf.getvalue()


def image_to_base64(image: Image.Image, fmt: str = "JPEG") -> str:
    return base64.b64encode(encode_image(image, fmt)).decode("ascii")
