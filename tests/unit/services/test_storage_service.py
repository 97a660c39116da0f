import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from signdesk.core.exceptions import StorageError
from signdesk.services.storage_service import StorageService, storage_key_from_url


@pytest.fixture
def storage():
    return StorageService(url="https://test.supabase.co/", api_key="service-key")


def make_response(status_code=200, json_data=None, content=b"", text=""):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = json_data
    response.content = content
    response.text = text
    return response


@pytest.mark.parametrize(
    "url, key",
    [
        ("https://x.supabase.co/storage/v1/object/public/work-orders/1700_ab.pdf", "1700_ab.pdf"),
        ("https://x.supabase.co/storage/v1/object/sign/work-orders/a.png?token=abc", "a.png"),
        ("https://x.supabase.co/storage/v1/object/public/work-orders/plan%20v2.pdf", "plan v2.pdf"),
        ("1700_ab.pdf", "1700_ab.pdf"),
    ],
)
def test_storage_key_from_url(url, key):
    assert storage_key_from_url(url) == key


def test_public_url(storage):
    assert storage.get_public_url("work-orders", "a.pdf") == (
        "https://test.supabase.co/storage/v1/object/public/work-orders/a.pdf"
    )


@pytest.mark.asyncio
async def test_upload_upload_file_object(storage, sample_pdf_content):
    upload = MagicMock()
    upload.read = AsyncMock(return_value=sample_pdf_content)
    upload.seek = AsyncMock()
    upload.content_type = "application/pdf"

    with patch("httpx.AsyncClient.post") as mock_post:
        mock_post.return_value = make_response(json_data={"Key": "work-orders/a.pdf"})
        result = await storage.upload_file(upload, "work-orders", "a.pdf")

    assert result == {"Key": "work-orders/a.pdf"}
    args, kwargs = mock_post.call_args
    assert args[0] == "https://test.supabase.co/storage/v1/object/work-orders/a.pdf"
    assert kwargs["content"] == sample_pdf_content
    assert kwargs["headers"]["Content-Type"] == "application/pdf"
    assert kwargs["headers"]["Authorization"] == "Bearer service-key"
    upload.seek.assert_awaited_once_with(0)


@pytest.mark.asyncio
async def test_upload_raw_bytes_uses_fallback_content_type(storage):
    with patch("httpx.AsyncClient.post") as mock_post:
        mock_post.return_value = make_response(json_data={})
        await storage.upload_file(b"raw", "work-orders", "a.bin")

    assert mock_post.call_args.kwargs["headers"]["Content-Type"] == "application/octet-stream"


@pytest.mark.asyncio
async def test_upload_rejected(storage):
    with patch("httpx.AsyncClient.post") as mock_post:
        mock_post.return_value = make_response(status_code=400, text="Bucket not found")
        with pytest.raises(StorageError, match="Bucket not found"):
            await storage.upload_file(b"raw", "missing", "a.pdf")


@pytest.mark.asyncio
async def test_upload_transport_error(storage):
    with patch("httpx.AsyncClient.post", side_effect=httpx.ConnectError("refused")):
        with pytest.raises(StorageError) as exc_info:
            await storage.upload_file(b"raw", "work-orders", "a.pdf")

    assert isinstance(exc_info.value.original_error, httpx.ConnectError)


@pytest.mark.asyncio
async def test_download_file(storage, sample_png_content):
    with patch("httpx.AsyncClient.get") as mock_get:
        mock_get.return_value = make_response(content=sample_png_content)
        data = await storage.download_file("work-orders", "a.png")

    assert data == sample_png_content
    assert mock_get.call_args.args[0] == "https://test.supabase.co/storage/v1/object/work-orders/a.png"


@pytest.mark.asyncio
async def test_download_missing_object(storage):
    with patch("httpx.AsyncClient.get") as mock_get:
        mock_get.return_value = make_response(status_code=404, text="Object not found")
        with pytest.raises(StorageError, match="404"):
            await storage.download_file("work-orders", "gone.png")


@pytest.mark.asyncio
async def test_remove_files(storage):
    with patch("httpx.AsyncClient.request") as mock_request:
        mock_request.return_value = make_response(json_data=[{"name": "a.pdf"}])
        result = await storage.remove_files("work-orders", ["a.pdf", "b.png"])

    assert result == [{"name": "a.pdf"}]
    args, kwargs = mock_request.call_args
    assert args[:2] == ("DELETE", "https://test.supabase.co/storage/v1/object/work-orders")
    assert kwargs["json"] == {"prefixes": ["a.pdf", "b.png"]}


@pytest.mark.asyncio
async def test_remove_nothing_skips_request(storage):
    with patch("httpx.AsyncClient.request") as mock_request:
        assert await storage.remove_files("work-orders", []) == []

    mock_request.assert_not_called()
