import io
import logging
from PIL import Image, UnidentifiedImageError


logger = logging.getLogger(__name__)


def read_dimensions(data: bytes):
    """Return (width, height) of an encoded image, or None if Pillow can't read it.

    Only the header is parsed; the pixels are never decoded. The declared
    content type stays the sole acceptance rule, so an unreadable header never
    rejects an import.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.size
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as exc:
        logger.info("image dimensions unreadable", extra={"stage": "dimensions", "error": str(exc)})
        return None
