from io import BytesIO
import logging
import xml.etree.ElementTree as ET
from PIL import Image, UnidentifiedImageError

from app.image_service.models import FileBlob
from app.settings import Settings

log = logging.getLogger(__name__)

RASTER_FORMATS = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
}

def is_image_type(content_type: str) -> bool:
    return bool(content_type) and content_type.startswith("image/")

def decodes_as_image(data: bytes, content_type: str) -> bool:
    """Checks that the bytes really are an image of a supported format."""
    if content_type == "image/svg+xml":
        try:
            root = ET.fromstring(data.decode("utf-8"))
        except (UnicodeDecodeError, ET.ParseError):
            return False
        # Check if root tag is svg (with or without namespace)
        return root.tag.split("}")[-1].lower() == "svg"
    try:
        img = Image.open(BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
        return False
    return img.format is not None and img.format.upper() in RASTER_FORMATS

def accept_file(blob: FileBlob, config: Settings) -> bool:
    """Decides whether a file takes part in an upload batch."""
    if not is_image_type(blob.content_type):
        return False
    if config.max_upload_bytes is not None and blob.size > config.max_upload_bytes:
        log.info("Skipping %s: %d bytes exceeds limit of %d", blob.name, blob.size, config.max_upload_bytes)
        return False
    if config.verify_image_content and not decodes_as_image(blob.data, blob.content_type):
        log.info("Skipping %s: content is not a valid %s", blob.name, blob.content_type)
        return False
    return True
