import boto3
import time
from typing import List, Optional
from urllib.parse import quote
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from app.settings import Settings, settings
import logging

log = logging.getLogger(__name__)

# DeleteObjects accepts at most this many keys per request
DELETE_BATCH_SIZE = 1000

def client_config(config: Settings) -> Config:
    """Timeouts and retry policy applied to every store call."""
    return Config(
        connect_timeout=config.store_connect_timeout,
        read_timeout=config.store_read_timeout,
        retries={"max_attempts": config.store_max_attempts, "mode": "standard"},
    )

# -------------------------
# S3 Service
# -------------------------
class S3Service:
    def __init__(self, config: Optional[Settings] = None):
        self.config = config or settings
        session = boto3.session.Session(region_name=self.config.aws_region)
        kwargs = {
            "aws_access_key_id": self.config.aws_access_key_id,
            "aws_secret_access_key": self.config.aws_secret_access_key,
            "config": client_config(self.config),
        }
        if self.config.aws_endpoint_url:
            kwargs["endpoint_url"] = self.config.aws_endpoint_url

        self.bucket = self.config.s3_bucket
        self.client = session.client("s3", **kwargs)
        log.info("Initialized S3 client")

        # Ensure bucket exists at initialization
        self.ensure_bucket()

    def ensure_bucket(self):
        try:
            self.client.head_bucket(Bucket=self.bucket)
            log.debug("Bucket %s already exists", self.bucket)
        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            if error_code in ("404", "NoSuchBucket"):
                kwargs = {"Bucket": self.bucket}
                if self.config.aws_region != "us-east-1":
                    kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.config.aws_region}
                self.client.create_bucket(**kwargs)
                log.info("Created bucket %s", self.bucket)
            else:
                log.error("Failed to check/create bucket: %s", e)
                raise

    def upload(self, fileobj, key: str, content_type: str):
        self.client.upload_fileobj(
            Fileobj=fileobj,
            Bucket=self.bucket,
            Key=key,
            ExtraArgs={"ContentType": content_type},
        )
        log.debug("Uploaded %s to s3://%s/%s", key, self.bucket, key)

    def public_url(self, key: str) -> str:
        """Builds the public URL for a key. No request is made, so missing keys still resolve."""
        quoted = quote(key)
        if self.config.public_base_url:
            return f"{self.config.public_base_url.rstrip('/')}/{quoted}"
        endpoint = self.config.external_endpoint or self.config.aws_endpoint_url
        if endpoint:
            return f"{endpoint.rstrip('/')}/{self.bucket}/{quoted}"
        return f"https://{self.bucket}.s3.{self.config.aws_region}.amazonaws.com/{quoted}"

    def generate_presigned_url(self, key: str, expires_in: Optional[int] = None) -> str:
        expires = expires_in or self.config.presign_expire_seconds
        url = self.client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=expires,
        )
        if self.config.external_endpoint and self.config.aws_endpoint_url:
            url = url.replace(self.config.aws_endpoint_url, self.config.external_endpoint)
        return url

    def delete(self, key: str):
        self.client.delete_object(Bucket=self.bucket, Key=key)
        log.debug("Deleted s3://%s/%s", self.bucket, key)

    def delete_many(self, keys: List[str]) -> List[str]:
        """
            Deletes keys in DeleteObjects batches and retries the keys that failed
            with exponential backoff. Returns the keys that could not be deleted.
        """
        pending = list(keys)
        delay = self.config.store_retry_base_delay
        attempts = max(1, self.config.store_max_attempts)

        for attempt in range(1, attempts + 1):
            failed = self._delete_batches(pending)
            if not failed:
                log.debug("Deleted %d objects from s3://%s", len(keys), self.bucket)
                return []
            pending = failed
            if attempt < attempts:
                log.warning(
                    "%d object(s) failed to delete (attempt %d/%d), retrying in %.2fs",
                    len(pending), attempt, attempts, delay,
                )
                time.sleep(delay)
                delay *= 2

        log.error("Giving up on %d object(s) in s3://%s", len(pending), self.bucket)
        return pending

    def _delete_batches(self, keys: List[str]) -> List[str]:
        failed = []
        for start in range(0, len(keys), DELETE_BATCH_SIZE):
            batch = keys[start:start + DELETE_BATCH_SIZE]
            try:
                resp = self.client.delete_objects(
                    Bucket=self.bucket,
                    Delete={"Objects": [{"Key": k} for k in batch], "Quiet": True},
                )
            except (BotoCoreError, ClientError) as e:
                log.warning("DeleteObjects failed for %d key(s): %s", len(batch), e)
                failed.extend(batch)
                continue
            for err in resp.get("Errors", []):
                log.warning("Could not delete %s: %s", err.get("Key"), err.get("Message"))
                failed.append(err["Key"])
        return failed

    def close(self):
        log.info("Closed S3 client")
