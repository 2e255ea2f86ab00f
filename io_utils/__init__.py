from .read import (
    ImageInput,
    load_image,
    to_pixels,
    encode_image,
    image_to_base64,
)
from .http import post_json, DEFAULT_TIMEOUT

__all__ = [
    "ImageInput",
    "load_image",
    "to_pixels",
    "encode_image",
    "image_to_base64",
    "post_json",
    "DEFAULT_TIMEOUT",
]
