import pytest
import json
from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from app import exceptions


@pytest.mark.asyncio
async def test_api_exception_handler():
    exc = exceptions.ImageNotFoundException("123")
    request = Request(scope={"type": "http"})
    response: JSONResponse = await exceptions.api_exception_handler(request, exc)

    assert response.status_code == 404
    # JSONResponse body is bytes, need to decode and parse
    body = json.loads(response.body.decode())
    assert body == {"detail": "Image with ID '123' not found."}


@pytest.mark.asyncio
async def test_upload_failed_is_generic():
    exc = exceptions.UploadFailedException()
    request = Request(scope={"type": "http"})
    response: JSONResponse = await exceptions.api_exception_handler(request, exc)

    assert response.status_code == 500
    body = json.loads(response.body.decode())
    assert body == {"detail": "Failed to upload image. Please try again."}


@pytest.mark.asyncio
async def test_http_exception_handler():
    exc = HTTPException(status_code=403, detail="Forbidden")
    request = Request(scope={"type": "http"})
    response: JSONResponse = await exceptions.http_exception_handler(request, exc)

    assert response.status_code == 403
    body = json.loads(response.body.decode())
    assert body == {"detail": "Forbidden"}


@pytest.mark.asyncio
async def test_generic_exception_handler():
    exc = ValueError("Something went wrong")
    request = Request(scope={"type": "http"})
    response: JSONResponse = await exceptions.generic_exception_handler(request, exc)

    assert response.status_code == 500
    body = json.loads(response.body.decode())
    assert body == {"detail": "An unexpected error occurred."}


@pytest.mark.parametrize("exc, status", [
    (exceptions.InvalidInputException(), 400),
    (exceptions.UnauthorizedException(), 401),
    (exceptions.DeleteFailedException(), 500),
    (exceptions.DynamoDBException("scan failed"), 500),
])
def test_custom_exceptions_inherit_api_exception(exc, status):
    assert isinstance(exc, exceptions.APIException)
    assert exc.status_code == status


def test_cleanup_exceptions_are_not_http_errors():
    partial = exceptions.CleanupPartialFailure(["a", "b"])
    assert not isinstance(partial, exceptions.APIException)
    assert partial.failed_keys == ["a", "b"]
    assert "2 object(s)" in str(partial)
