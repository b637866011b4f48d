import secrets
from typing import Optional
from fastapi import Depends
from fastapi.requests import HTTPConnection
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.storage.dynamodb import DynamoDBService
from app.storage.s3 import S3Service
from app.image_service.gallery import GalleryReader
from app.image_service.uploader import ImageUploader
from app.settings import Settings
from app.exceptions import UnauthorizedException

bearer_scheme = HTTPBearer(auto_error=False)

def get_settings(connection: HTTPConnection) -> Settings:
    """Dependency provider for Settings"""
    return connection.app.state.settings

def get_s3_service(connection: HTTPConnection) -> S3Service:
    """Dependency provider for S3Service"""
    return connection.app.state.s3

def get_dynamodb_service(connection: HTTPConnection) -> DynamoDBService:
    """Dependency provider for DynamoDBService"""
    return connection.app.state.db

def get_uploader(
    db: DynamoDBService = Depends(get_dynamodb_service),
    s3: S3Service = Depends(get_s3_service),
    config: Settings = Depends(get_settings),
) -> ImageUploader:
    return ImageUploader(db, s3, config)

def get_gallery(
    db: DynamoDBService = Depends(get_dynamodb_service),
    s3: S3Service = Depends(get_s3_service),
) -> GalleryReader:
    return GalleryReader(db, s3)

def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    config: Settings = Depends(get_settings),
):
    """Rejects the request unless it carries the configured admin bearer token."""
    if not config.admin_token:
        raise UnauthorizedException("Admin operations are disabled.")
    if credentials is None or not secrets.compare_digest(
        credentials.credentials.encode(), config.admin_token.encode()
    ):
        raise UnauthorizedException()
