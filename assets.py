import io
import logging
from enum import Enum

from PIL import Image, UnidentifiedImageError  # type: ignore

logger = logging.getLogger(__name__)


class AssetType(str, Enum):
    LOGO = "LOGO"
    SIGNATURE = "SIGNATURE"
    QR = "QR"


class AssetError(ValueError):
    pass


def prepare_image(img_bytes: bytes, max_px: int = 240) -> bytes:
    """Check the upload is an image and return it as a bounded RGB PNG."""
    if not img_bytes:
        raise AssetError("Empty upload")
    try:
        img = Image.open(io.BytesIO(img_bytes))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise AssetError(f"Not a readable image: {e}") from e

    if img.mode in ("RGBA", "LA", "P"):
        # flatten transparency onto white so the PDF shows no black box
        img = img.convert("RGBA")
        background = Image.new("RGB", img.size, "white")
        background.paste(img, mask=img.split()[-1])
        img = background
    else:
        img = img.convert("RGB")
    img.thumbnail((max_px, max_px))

    out = io.BytesIO()
    img.save(out, format="PNG")
    logger.info("asset prepared", extra={"width": img.width, "height": img.height})
    return out.getvalue()
