from fastapi import APIRouter, Depends, UploadFile, File, Query, Response, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from typing import List, Optional
import asyncio
import logging
from botocore.exceptions import BotoCoreError, ClientError

from app.storage.dynamodb import DynamoDBService
from app.storage.s3 import S3Service
from app.dependencies.dependencies import (
    get_s3_service, get_dynamodb_service, get_uploader, get_gallery, require_admin,
)
from app.image_service.gallery import GalleryReader
from app.image_service.uploader import ImageUploader
from app.image_service.models import (
    FileBlob, ImageRecord, UploadResponse, ListImagesResponse, DownloadResponse,
)
from app.exceptions import S3Exception

log = logging.getLogger(__name__)

router = APIRouter(
    prefix="/images",
    tags=["image-gallery"]
)

@router.post("", response_model=UploadResponse, status_code=201)
async def upload_images(
    files: Optional[List[UploadFile]] = File(None),
    response: Response = None,
    uploader: ImageUploader = Depends(get_uploader),
):
    """Uploads one or more images to the public gallery."""
    # Add security header
    if response:
        response.headers["X-Content-Type-Options"] = "nosniff"

    blobs = []
    for file in files or []:
        contents = await file.read()
        blobs.append(FileBlob(
            name=file.filename or "image",
            content_type=file.content_type or "",
            size=file.size if file.size is not None else len(contents),
            data=contents,
        ))

    images = await run_in_threadpool(uploader.upload, blobs)
    return UploadResponse(images=images)

@router.get("", response_model=ListImagesResponse)
def list_images_handler(gallery: GalleryReader = Depends(get_gallery)):
    """Lists every image, newest first."""
    return ListImagesResponse(images=gallery.list_images())

@router.websocket("/feed")
async def gallery_feed(
    websocket: WebSocket,
    db: DynamoDBService = Depends(get_dynamodb_service),
    s3: S3Service = Depends(get_s3_service),
):
    """Sends the current listing, then a fresh listing after every new upload."""
    await websocket.accept()
    loop = asyncio.get_running_loop()
    changed = asyncio.Event()
    gallery = GalleryReader(db, s3)
    # Inserts publish from a worker thread; a burst of them collapses into one refresh
    gallery.subscribe(lambda: loop.call_soon_threadsafe(changed.set))
    watcher = asyncio.create_task(_wait_for_disconnect(websocket))
    waiter = None
    try:
        while True:
            images = await run_in_threadpool(gallery.refresh)
            await websocket.send_json(ListImagesResponse(images=images).model_dump(mode="json"))
            waiter = asyncio.create_task(changed.wait())
            done, _ = await asyncio.wait({waiter, watcher}, return_when=asyncio.FIRST_COMPLETED)
            if watcher in done:
                break
            changed.clear()
    except WebSocketDisconnect:
        pass
    finally:
        watcher.cancel()
        if waiter is not None:
            waiter.cancel()
        gallery.close()
    log.info("Gallery feed client disconnected")

async def _wait_for_disconnect(websocket: WebSocket):
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return

@router.get("/{image_id}", response_model=ImageRecord)
def get_image(
    image_id: str,
    gallery: GalleryReader = Depends(get_gallery),
):
    """Gets image metadata."""
    return gallery.get_image(image_id)

@router.get("/{image_id}/download", response_model=DownloadResponse)
def get_presigned_url(
    image_id: str,
    expires_in: Optional[int] = Query(None, ge=60, le=86400, description="Expiration time in seconds (60-86400)"),
    gallery: GalleryReader = Depends(get_gallery),
    s3: S3Service = Depends(get_s3_service),
):
    """
    Generates a presigned URL for downloading an image.

    The URL is valid for a limited time (default 15 minutes, max 24 hours).
    """
    record = gallery.get_image(image_id)

    try:
        presigned_url = s3.generate_presigned_url(record.filename, expires_in=expires_in)
    except (BotoCoreError, ClientError) as e:
        log.error(f"Failed to generate presigned URL: {e}")
        raise S3Exception(f"Failed to generate download URL: {e}")

    return DownloadResponse(
        image_id=image_id,
        download_url=presigned_url,
        expires_in=expires_in or s3.config.presign_expire_seconds,
    )

@router.delete("/{image_id}", status_code=204, dependencies=[Depends(require_admin)])
def delete_image(
    image_id: str,
    gallery: GalleryReader = Depends(get_gallery),
):
    """Deletes an image and its metadata."""
    record = gallery.get_image(image_id)
    gallery.delete_image(record)
    return Response(status_code=204)
