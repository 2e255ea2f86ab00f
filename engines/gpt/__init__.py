from .image_to_card import image_to_card

from .. import register_task

try:  # load environment variables from .env if available
    from dotenv import load_dotenv

    load_dotenv()
except Exception:  # pragma: no cover - optional dependency
    pass

register_task("image_to_card", "openai", __name__, "image_to_card")

__all__ = ["image_to_card"]
