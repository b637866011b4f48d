from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
import logging

from app.storage.dynamodb import DynamoDBService
from app.storage.s3 import S3Service
from app.dependencies.dependencies import get_s3_service, get_dynamodb_service, require_admin
from app.cleanup.job import CleanupJob
from app.image_service.models import CleanupSummary

log = logging.getLogger(__name__)

router = APIRouter(
    prefix="/cleanup",
    tags=["cleanup"]
)

# Added to every cleanup response, preflight included
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

@router.options("")
def cleanup_preflight():
    return Response(status_code=200, headers=CORS_HEADERS)

@router.api_route(
    "",
    methods=["GET", "POST"],
    response_model=CleanupSummary,
    dependencies=[Depends(require_admin)],
)
def run_cleanup(
    db: DynamoDBService = Depends(get_dynamodb_service),
    s3: S3Service = Depends(get_s3_service),
):
    """Deletes every image and its metadata. Triggered daily by an external scheduler."""
    summary = CleanupJob(db, s3).run()
    return JSONResponse(
        status_code=200 if summary.success else 500,
        content=summary.model_dump(exclude_none=True),
        headers=CORS_HEADERS,
    )
