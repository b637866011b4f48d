import io
import re
import pytest
from PIL import Image
from botocore.exceptions import ClientError

from app.image_service import uploader
from app.image_service.models import FileBlob
from app.image_service.validation import decodes_as_image
from app.settings import Settings
from app.exceptions import InvalidInputException, UploadFailedException


def make_png_bytes():
    """Generate a simple valid PNG in-memory."""
    img = Image.new("RGB", (10, 10), color="red")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def blob(name="a.png", content_type="image/png", data=b"12345"):
    return FileBlob(name=name, content_type=content_type, size=len(data), data=data)


def client_error(op="PutObject"):
    return ClientError({"Error": {"Code": "InternalError", "Message": "boom"}}, op)


def fake_insert(item):
    return {**item, "id": f"id-{item['original_name']}", "created_at": "2026-01-01T00:00:00+00:00"}


@pytest.fixture
def stores(mocker):
    db = mocker.Mock()
    s3 = mocker.Mock()
    db.insert.side_effect = fake_insert
    return db, s3


# ------------------------------
# storage_key / sanitize_name
# ------------------------------

def test_storage_key_format():
    key = uploader.storage_key("my photo.png")
    assert re.fullmatch(r"\d{13}-[0-9a-f]{8}-my_photo\.png", key)


def test_storage_keys_are_unique():
    keys = {uploader.storage_key("same.png") for _ in range(50)}
    assert len(keys) == 50


def test_sanitize_name_strips_paths():
    assert uploader.sanitize_name("../../etc/passwd") == "passwd"
    assert uploader.sanitize_name("C:\\Users\\me\\cat.jpg") == "cat.jpg"
    assert uploader.sanitize_name("???") == "image"


def test_sanitize_name_keeps_extension_of_non_ascii_name():
    assert uploader.sanitize_name("猫.png") == "image.png"
    assert uploader.sanitize_name("фото кота.jpeg") == "image.jpeg"
    assert uploader.storage_key("猫.png").endswith("-image.png")


# ------------------------------
# upload
# ------------------------------

def test_upload_success_in_input_order(stores, mocker):
    db, s3 = stores
    calls = mocker.Mock()
    s3.upload.side_effect = lambda **kw: calls("blob", kw["key"])
    db.insert.side_effect = lambda item: (calls("record", item["filename"]), fake_insert(item))[1]

    images = uploader.ImageUploader(db, s3, Settings()).upload([blob("a.png"), blob("b.png", data=b"xx")])

    assert [i.original_name for i in images] == ["a.png", "b.png"]
    assert [i.file_size for i in images] == [5, 2]
    kinds = [c.args[0] for c in calls.call_args_list]
    assert kinds == ["blob", "record", "blob", "record"]
    # the record references the key its blob was written under
    assert calls.call_args_list[0].args[1] == calls.call_args_list[1].args[1]


def test_upload_filters_non_images(stores):
    db, s3 = stores
    images = uploader.ImageUploader(db, s3, Settings()).upload(
        [blob("notes.txt", "text/plain"), blob("c.jpg", "image/jpeg")]
    )
    assert [i.original_name for i in images] == ["c.jpg"]
    s3.upload.assert_called_once()


@pytest.mark.parametrize("files", [[], [blob("a.txt", "text/plain"), blob("b.pdf", "application/pdf")]])
def test_upload_invalid_input_touches_nothing(stores, files):
    db, s3 = stores
    with pytest.raises(InvalidInputException):
        uploader.ImageUploader(db, s3, Settings()).upload(files)
    assert s3.upload.call_count == 0
    assert db.insert.call_count == 0


def test_upload_blob_failure_aborts_batch(stores):
    db, s3 = stores
    s3.upload.side_effect = [None, client_error(), None]

    with pytest.raises(UploadFailedException) as exc:
        uploader.ImageUploader(db, s3, Settings()).upload([blob("1.png"), blob("2.png"), blob("3.png")])

    assert exc.value.status_code == 500
    assert s3.upload.call_count == 2
    # first file stays stored, no rollback
    assert db.insert.call_count == 1


def test_upload_record_failure_leaves_orphan(stores):
    db, s3 = stores
    db.insert.side_effect = client_error("PutItem")

    with pytest.raises(UploadFailedException):
        uploader.ImageUploader(db, s3, Settings()).upload([blob("1.png"), blob("2.png")])

    s3.upload.assert_called_once()
    s3.delete.assert_not_called()


def test_upload_size_limit_when_configured(stores):
    db, s3 = stores
    with pytest.raises(InvalidInputException):
        uploader.ImageUploader(db, s3, Settings(max_upload_bytes=3)).upload([blob(data=b"12345")])


def test_upload_verifies_content_when_configured(stores):
    db, s3 = stores
    up = uploader.ImageUploader(db, s3, Settings(verify_image_content=True))

    with pytest.raises(InvalidInputException):
        up.upload([blob(data=b"notanimage")])

    images = up.upload([blob(data=make_png_bytes())])
    assert len(images) == 1


# ------------------------------
# content checks
# ------------------------------

def test_decodes_png():
    assert decodes_as_image(make_png_bytes(), "image/png")


def test_decodes_rejects_garbage():
    assert not decodes_as_image(b"notanimage", "image/png")


def test_decodes_svg():
    assert decodes_as_image(b'<svg xmlns="http://www.w3.org/2000/svg"></svg>', "image/svg+xml")
    assert not decodes_as_image(b"<not_svg></not_svg>", "image/svg+xml")
