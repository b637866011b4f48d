"""
    Centralized exception handling for the FastAPI application.
"""
from typing import List, Optional
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
import logging

log = logging.getLogger(__name__)

UPLOAD_FAILED_MESSAGE = "Failed to upload image. Please try again."
DELETE_FAILED_MESSAGE = "Failed to delete image. Please try again."

class APIException(Exception):
    """Base class for API exceptions."""
    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(self.detail)

class ImageNotFoundException(APIException):
    """Exception for when an image is not found."""
    def __init__(self, image_id: str):
        super().__init__(status_code=404, detail=f"Image with ID '{image_id}' not found.")

class InvalidInputException(APIException):
    """No valid image files were selected."""
    def __init__(self, detail: str = "Please select valid image files"):
        super().__init__(status_code=400, detail=detail)

class UploadFailedException(APIException):
    """Any store failure during an upload batch."""
    def __init__(self, detail: str = UPLOAD_FAILED_MESSAGE):
        super().__init__(status_code=500, detail=detail)

class DeleteFailedException(APIException):
    """Store failure while deleting a single image."""
    def __init__(self, detail: str = DELETE_FAILED_MESSAGE):
        super().__init__(status_code=500, detail=detail)

class S3Exception(APIException):
    """Exception for S3 failures."""
    def __init__(self, detail: str):
        super().__init__(status_code=500, detail=detail)

class DynamoDBException(APIException):
    """Exception for DynamoDB failures."""
    def __init__(self, detail: str):
        super().__init__(status_code=500, detail=detail)

class UnauthorizedException(APIException):
    def __init__(self, detail: str = "Admin authorization required."):
        super().__init__(status_code=401, detail=detail)

class CleanupPartialFailure(Exception):
    """Some blobs could not be removed during cleanup; records are removed anyway."""
    def __init__(self, failed_keys: List[str]):
        self.failed_keys = failed_keys
        super().__init__(f"Failed to delete {len(failed_keys)} object(s) from storage")

class CleanupFailed(Exception):
    """Records could not be enumerated or removed; the cleanup run is reported as failed."""
    def __init__(self, detail: str, cause: Optional[Exception] = None):
        self.cause = cause
        super().__init__(detail)

async def api_exception_handler(request: Request, exc: APIException):
    """Handles API exceptions."""
    log.error(f"API Exception: {exc.detail}", exc_info=exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )

async def http_exception_handler(request: Request, exc: HTTPException):
    """Handles FastAPI HTTP exceptions."""
    log.error(f"HTTP Exception: {exc.detail}", exc_info=exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )

async def generic_exception_handler(request: Request, exc: Exception):
    """Handles all other exceptions."""
    log.error(f"Unhandled Exception: {str(exc)}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred."},
    )

def add_exception_handlers(app):
    """Adds exception handlers to the FastAPI app."""
    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
