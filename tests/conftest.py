import os
import pytest
from moto import mock_aws
from fastapi.testclient import TestClient

# Set test environment variables BEFORE importing app modules

# Dummy AWS credentials for moto
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_SECURITY_TOKEN"] = "testing"
os.environ["AWS_SESSION_TOKEN"] = "testing"
os.environ["AWS_REGION"] = "us-east-1"
os.environ["S3_BUCKET"] = "image-gallery-bucket"
os.environ["DYNAMODB_TABLE"] = "images"
os.environ["ADMIN_TOKEN"] = "test-admin-token"
os.environ["STORE_RETRY_BASE_DELAY"] = "0"
# Clear the endpoints so moto mocks are used instead of localstack
os.environ.pop("AWS_ENDPOINT_URL", None)
os.environ.pop("PUBLIC_BASE_URL", None)
os.environ.pop("EXTERNAL_ENDPOINT", None)

from app.main import app
from app.settings import Settings
from app.storage.s3 import S3Service
from app.storage.dynamodb import DynamoDBService

ADMIN_TOKEN = "test-admin-token"


@pytest.fixture(scope="function")
def aws_credentials():
    """Mocked AWS Credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"


@pytest.fixture
def test_settings():
    return Settings()


@pytest.fixture(scope="function")
def stores(aws_credentials, test_settings):
    """Real S3 and DynamoDB services backed by moto; bucket and table are created on init."""
    with mock_aws():
        s3_service = S3Service(test_settings)
        db_service = DynamoDBService(test_settings)
        yield db_service, s3_service


@pytest.fixture(scope="function")
def test_client(aws_credentials):
    with mock_aws():
        # The lifespan creates the services inside the moto context
        with TestClient(app) as client:
            yield client


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}
