from datetime import datetime, timezone
from io import BytesIO
from typing import List, Optional, Sequence
import logging
import re
import time
import uuid
from botocore.exceptions import BotoCoreError, ClientError

from app.storage.dynamodb import DynamoDBService
from app.storage.s3 import S3Service
from app.image_service.models import FileBlob, ImageRecord
from app.image_service.validation import accept_file
from app.settings import Settings, settings
from app.exceptions import InvalidInputException, UploadFailedException

log = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")

def sanitize_name(name: str) -> str:
    """Strips any path and replaces characters that are awkward in object keys."""
    base = name.replace("\\", "/").rsplit("/", 1)[-1]
    stem, dot, ext = base.rpartition(".")
    if not dot:
        stem, ext = base, ""
    stem = _UNSAFE_CHARS.sub("_", stem).strip("._") or "image"
    ext = _UNSAFE_CHARS.sub("", ext).strip(".")
    return f"{stem}.{ext}" if ext else stem

def storage_key(original_name: str) -> str:
    """Generates a collision resistant object key: <epoch ms>-<random>-<name>."""
    return f"{time.time_ns() // 1_000_000}-{uuid.uuid4().hex[:8]}-{sanitize_name(original_name)}"

class ImageUploader:
    def __init__(self, db: DynamoDBService, s3: S3Service, config: Optional[Settings] = None):
        self.db = db
        self.s3 = s3
        self.config = config or settings

    def upload(self, files: Sequence[FileBlob]) -> List[ImageRecord]:
        """
            Uploads each accepted file in input order: blob first, then its record.
            The first failure aborts the batch; files already stored are kept.
        """
        accepted = [f for f in files if accept_file(f, self.config)]
        if not accepted:
            raise InvalidInputException()

        saved: List[ImageRecord] = []
        for blob in accepted:
            key = storage_key(blob.name)
            try:
                self.s3.upload(fileobj=BytesIO(blob.data), key=key, content_type=blob.content_type)
            except (BotoCoreError, ClientError) as e:
                log.error(f"Blob write failed for {blob.name} after {len(saved)} stored: {e}")
                raise UploadFailedException() from e

            try:
                item = self.db.insert({
                    "filename": key,
                    "original_name": blob.name,
                    "file_size": blob.size,
                    "uploaded_at": datetime.now(timezone.utc).isoformat(timespec="microseconds"),
                })
            except (BotoCoreError, ClientError) as e:
                log.error(f"Record insert failed for {blob.name}, blob {key} left orphaned: {e}")
                raise UploadFailedException() from e

            saved.append(ImageRecord.from_item(item))

        log.info("Uploaded %d image(s)", len(saved))
        return saved
