import boto3
import uuid
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List, Sequence
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError
from app.settings import Settings, settings
from app.storage.feed import ChangeFeed, RecordEvent, Subscription, Listener, INSERT
from app.storage.s3 import client_config
import logging

log = logging.getLogger(__name__)

# -------------------------
# DynamoDB Service
# -------------------------
class DynamoDBService:
    def __init__(self, config: Optional[Settings] = None, feed: Optional[ChangeFeed] = None):
        self.config = config or settings
        self.feed = feed or ChangeFeed()
        session = boto3.session.Session(region_name=self.config.aws_region)
        kwargs = {
            "aws_access_key_id": self.config.aws_access_key_id,
            "aws_secret_access_key": self.config.aws_secret_access_key,
            "config": client_config(self.config),
        }
        if self.config.aws_endpoint_url:
            kwargs["endpoint_url"] = self.config.aws_endpoint_url

        self.resource = session.resource("dynamodb", **kwargs)
        self.table = self.resource.Table(self.config.dynamodb_table)
        log.info("Initialized DynamoDB resource")

        # Ensure table exists at initialization
        self.ensure_table()

    # Refer here: https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/dynamodb/client/create_table.html
    def ensure_table(self):
        try:
            self.table.load()
        except ClientError:
            self.table = self.resource.create_table(
                TableName=self.config.dynamodb_table,
                KeySchema=[{"AttributeName": "id", "KeyType": "HASH"}],
                AttributeDefinitions=[{"AttributeName": "id", "AttributeType": "S"}],
                BillingMode="PAY_PER_REQUEST",
            )
            self.table.wait_until_exists()
            log.info("Created table %s", self.config.dynamodb_table)

    def insert(self, item: Dict[str, Any]) -> Dict[str, Any]:
        """Stores a new record, assigning its id and created_at, and notifies subscribers."""
        record = dict(item)
        record["id"] = str(uuid.uuid4())
        record["created_at"] = datetime.now(timezone.utc).isoformat(timespec="microseconds")
        self.table.put_item(Item=record, ConditionExpression=Attr("id").not_exists())
        log.debug("Inserted metadata %s", record["id"])
        self.feed.publish(RecordEvent(INSERT, record))
        return record

    def get(self, image_id: str) -> Optional[Dict[str, Any]]:
        resp = self.table.get_item(Key={"id": image_id})
        return resp.get("Item")

    def scan_all(
        self,
        attributes: Optional[Sequence[str]] = None,
        page_size: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Reads every page of the table."""
        scan_kwargs: Dict[str, Any] = {}
        if attributes:
            scan_kwargs["ProjectionExpression"] = ", ".join(f"#a{i}" for i in range(len(attributes)))
            scan_kwargs["ExpressionAttributeNames"] = {f"#a{i}": name for i, name in enumerate(attributes)}
        if page_size:
            scan_kwargs["Limit"] = page_size

        items: List[Dict[str, Any]] = []
        while True:
            resp = self.table.scan(**scan_kwargs)
            items.extend(resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                return items
            scan_kwargs["ExclusiveStartKey"] = last_key

    def query(self, order_by: str = "uploaded_at", descending: bool = True) -> List[Dict[str, Any]]:
        # A scan has no ordering, so sort after reading; created_at breaks ties
        items = self.scan_all()
        items.sort(key=lambda it: (it.get(order_by, ""), it.get("created_at", "")), reverse=descending)
        return items

    def delete(self, image_id: str) -> bool:
        """Deletes one record. Returns False when it was already gone."""
        try:
            self.table.delete_item(Key={"id": image_id}, ConditionExpression=Attr("id").exists())
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                log.debug("Metadata %s already deleted", image_id)
                return False
            raise
        log.debug("Deleted metadata %s", image_id)
        return True

    def delete_many(self, image_ids: Sequence[str]):
        # batch_writer splits into 25-item requests and resends unprocessed items
        with self.table.batch_writer() as batch:
            for image_id in image_ids:
                batch.delete_item(Key={"id": image_id})
        log.debug("Deleted %d metadata records", len(image_ids))

    def subscribe(self, listener: Listener) -> Subscription:
        return self.feed.subscribe(listener)

    def close(self):
        log.info("Closed DynamoDB resource")
