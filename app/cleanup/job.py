"""
    Daily cleanup of every uploaded image.

    Run from the HTTP endpoint (POST /cleanup) or directly from a scheduler:

        59 23 * * *  python -m app.cleanup.job

    Blobs are removed before records. A blob that cannot be removed is logged
    and its record is removed anyway. A record deletion failure ends the run
    and is reported in the summary.
"""
from typing import Any, Dict, List, Optional
import json
import logging
import sys
from botocore.exceptions import BotoCoreError, ClientError

from app.storage.dynamodb import DynamoDBService
from app.storage.s3 import S3Service
from app.image_service.models import CleanupSummary
from app.exceptions import CleanupFailed, CleanupPartialFailure

log = logging.getLogger(__name__)

class CleanupJob:
    def __init__(self, db: DynamoDBService, s3: S3Service, batch_size: Optional[int] = None):
        self.db = db
        self.s3 = s3
        if batch_size is not None and batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.batch_size = batch_size or db.config.cleanup_batch_size

    def run(self) -> CleanupSummary:
        log.info("Starting daily cleanup process...")
        deleted = 0
        storage_failures = 0
        try:
            records = self._enumerate()
            log.info("Found %d images to clean up", len(records))
            if not records:
                return CleanupSummary(success=True, deleted_count=0, message="No images to clean up")

            for start in range(0, len(records), self.batch_size):
                batch = records[start:start + self.batch_size]
                try:
                    self._delete_blobs(batch)
                except CleanupPartialFailure as e:
                    log.error(f"Storage deletion error: {e}; continuing with record cleanup")
                    storage_failures += len(e.failed_keys)
                self._delete_records(batch)
                deleted += len(batch)
        except CleanupFailed as e:
            log.error(f"Cleanup error after removing {deleted} records: {e}", exc_info=e.cause)
            return CleanupSummary(
                success=False,
                deleted_count=deleted,
                storage_failures=storage_failures,
                error=str(e),
            )

        message = f"Successfully cleaned up {deleted} images"
        if storage_failures:
            message += f" ({storage_failures} file(s) could not be removed from storage)"
        log.info(message)
        return CleanupSummary(
            success=True,
            deleted_count=deleted,
            storage_failures=storage_failures,
            message=message,
        )

    def _enumerate(self) -> List[Dict[str, Any]]:
        try:
            return self.db.scan_all(attributes=("id", "filename"), page_size=self.batch_size)
        except (BotoCoreError, ClientError) as e:
            raise CleanupFailed(f"Failed to fetch images: {e}", cause=e)

    def _delete_blobs(self, batch: List[Dict[str, Any]]):
        keys = [item["filename"] for item in batch if item.get("filename")]
        failed = self.s3.delete_many(keys)
        if failed:
            raise CleanupPartialFailure(failed)

    def _delete_records(self, batch: List[Dict[str, Any]]):
        try:
            self.db.delete_many([item["id"] for item in batch])
        except (BotoCoreError, ClientError) as e:
            raise CleanupFailed(f"Failed to delete database records: {e}", cause=e)

def main() -> int:
    logging.basicConfig(level=logging.INFO)
    db = DynamoDBService()
    s3 = S3Service()
    try:
        summary = CleanupJob(db, s3).run()
    finally:
        s3.close()
        db.close()
    print(json.dumps(summary.model_dump(exclude_none=True)))
    return 0 if summary.success else 1

if __name__ == "__main__":
    sys.exit(main())
