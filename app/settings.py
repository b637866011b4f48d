from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional

class Settings(BaseSettings):
    aws_region: str = "us-east-1"
    s3_bucket: str = "image-gallery-bucket"
    dynamodb_table: str = "images"
    aws_endpoint_url: Optional[str] = None
    external_endpoint: Optional[str] = None
    # Overrides the URL prefix used for public image links (CDN, custom domain)
    public_base_url: Optional[str] = None
    presign_expire_seconds: int = 900

    aws_access_key_id: str = "test"
    aws_secret_access_key: str = "test"

    app_title: str = "Image Gallery"
    log_level: str = "INFO"

    # Bearer token for delete and cleanup; admin operations are refused when unset
    admin_token: Optional[str] = None

    store_connect_timeout: float = 5.0
    store_read_timeout: float = 30.0
    store_max_attempts: int = 3
    store_retry_base_delay: float = 0.5

    cleanup_batch_size: int = Field(500, gt=0)

    # Upload hardening, off unless configured
    max_upload_bytes: Optional[int] = None
    verify_image_content: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="allow",  # tolerate unknown vars if needed
    )

settings = Settings()
