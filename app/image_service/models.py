from typing import Any, Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel

class FileBlob(BaseModel):
    """One file received from the client."""
    name: str
    content_type: str
    size: int
    data: bytes

class ImageRecord(BaseModel):
    id: str
    filename: str
    original_name: str
    file_size: int
    uploaded_at: datetime
    created_at: datetime

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "ImageRecord":
        # DynamoDB returns numbers as Decimal and timestamps as ISO strings
        return cls(
            id=item["id"],
            filename=item["filename"],
            original_name=item.get("original_name", item["filename"]),
            file_size=int(item.get("file_size", 0)),
            uploaded_at=datetime.fromisoformat(item["uploaded_at"]),
            created_at=datetime.fromisoformat(item["created_at"]),
        )

class GalleryImage(ImageRecord):
    url: str

class UploadResponse(BaseModel):
    images: List[ImageRecord]

class ListImagesResponse(BaseModel):
    images: List[GalleryImage]

class DownloadResponse(BaseModel):
    image_id: str
    download_url: str
    expires_in: int

class CleanupSummary(BaseModel):
    success: bool
    deleted_count: int = 0
    storage_failures: int = 0
    message: Optional[str] = None
    error: Optional[str] = None
