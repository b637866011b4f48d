from typing import Callable, List
import logging
from botocore.exceptions import BotoCoreError, ClientError

from app.storage.dynamodb import DynamoDBService
from app.storage.s3 import S3Service
from app.storage.feed import RecordEvent, Subscription, INSERT
from app.image_service.models import GalleryImage, ImageRecord
from app.exceptions import DeleteFailedException, DynamoDBException, ImageNotFoundException

log = logging.getLogger(__name__)

ChangeListener = Callable[[], None]

class GalleryReader:
    """
        Read side of the gallery.

        Every listing re-queries the record store. Subscribers are only told that
        something changed and call refresh() themselves, off the writer's thread.
        Subscriptions are cancelled by close().
    """

    def __init__(self, db: DynamoDBService, s3: S3Service):
        self.db = db
        self.s3 = s3
        self._subscriptions: List[Subscription] = []

    def list_images(self) -> List[GalleryImage]:
        """Lists every image, most recently uploaded first."""
        try:
            items = self.db.query(order_by="uploaded_at", descending=True)
        except (BotoCoreError, ClientError) as e:
            log.error(f"DynamoDB query failed: {e}")
            raise DynamoDBException(f"Failed to fetch images: {e}")

        return [
            GalleryImage(**record.model_dump(), url=self.s3.public_url(record.filename))
            for record in (ImageRecord.from_item(it) for it in items)
        ]

    def refresh(self) -> List[GalleryImage]:
        return self.list_images()

    def subscribe(self, listener: ChangeListener) -> Subscription:
        """Calls listener, with no arguments, on every insert. It runs on the inserting thread and must stay cheap."""
        def on_event(event: RecordEvent):
            if event.event_type == INSERT:
                listener()

        subscription = self.db.subscribe(on_event)
        self._subscriptions.append(subscription)
        return subscription

    def close(self):
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()

    def get_image(self, image_id: str) -> ImageRecord:
        try:
            item = self.db.get(image_id)
        except (BotoCoreError, ClientError) as e:
            log.error(f"DynamoDB get failed: {e}")
            raise DynamoDBException(f"Failed to get image metadata: {e}")
        if not item:
            raise ImageNotFoundException(image_id)
        return ImageRecord.from_item(item)

    def delete_image(self, record: ImageRecord) -> bool:
        """
            Deletes the blob, then the record.
            Returns False when another caller already removed the record.
        """
        try:
            self.s3.delete(record.filename)
        except (BotoCoreError, ClientError) as e:
            log.error(f"S3 delete failed for {record.filename}, record {record.id} kept: {e}")
            raise DeleteFailedException() from e

        try:
            removed = self.db.delete(record.id)
        except (BotoCoreError, ClientError) as e:
            log.error(f"DynamoDB delete failed for {record.id}, listing now points at a missing blob: {e}")
            raise DeleteFailedException() from e

        if removed:
            log.info("Deleted image %s", record.id)
        else:
            log.info("Image %s was already deleted", record.id)
        return removed
