"""Tests for the blob storage client (httpx.MockTransport, no network)."""

import httpx
import pytest

from petsanta.services.exceptions import StorageError
from petsanta.services.storage.blob_client import (
    BlobStorageClient,
    generated_image_path,
    original_image_path,
)


def make_client(handler, token: str = "blob_rw_token") -> BlobStorageClient:
    return BlobStorageClient(
        token=token,
        api_url="https://blob.api.test",
        timeout=5.0,
        transport=httpx.MockTransport(handler),
    )


def test_generated_image_path():
    assert (
        generated_image_path("user_1", "kie_42", "png")
        == "pets-santa/generated/user_1/kie_42.png"
    )


@pytest.mark.parametrize(
    "filename,suffix",
    [
        ("dog.png", "-dog.png"),
        ("../../etc/my dog.jpg", "-my_dog.jpg"),
        ("", "-photo"),
    ],
)
def test_original_image_path(filename, suffix):
    path = original_image_path("user_1", filename)

    assert path.startswith("pets-santa/originals/user_1/")
    assert path.endswith(suffix)
    assert "/" not in path.removeprefix("pets-santa/originals/user_1/")


def test_original_image_path_is_unique_per_upload():
    assert original_image_path("user_1", "dog.png") != original_image_path("user_1", "dog.png")


@pytest.mark.asyncio
class TestBlobStorageClient:
    async def test_put_uploads_publicly(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["method"] = request.method
            captured["path"] = request.url.path
            captured["access"] = request.url.params["access"]
            captured["auth"] = request.headers["Authorization"]
            captured["content_type"] = request.headers["x-content-type"]
            captured["body"] = request.content
            return httpx.Response(
                200, json={"url": "https://public.blob.test/pets-santa/generated/u/t.png"}
            )

        url = await make_client(handler).put(
            "pets-santa/generated/u/t.png", b"image-bytes", content_type="image/png"
        )

        assert url == "https://public.blob.test/pets-santa/generated/u/t.png"
        assert captured == {
            "method": "PUT",
            "path": "/pets-santa/generated/u/t.png",
            "access": "public",
            "auth": "Bearer blob_rw_token",
            "content_type": "image/png",
            "body": b"image-bytes",
        }

    async def test_put_without_token_fails(self):
        def handler(request):
            raise AssertionError("no request expected")

        with pytest.raises(StorageError, match="BLOB_READ_WRITE_TOKEN"):
            await make_client(handler, token="").put("p.png", b"x")

    async def test_put_http_error(self):
        def handler(request):
            return httpx.Response(500, text="boom")

        with pytest.raises(StorageError, match="Upload failed"):
            await make_client(handler).put("p.png", b"x")

    async def test_put_response_without_url(self):
        def handler(request):
            return httpx.Response(200, json={"pathname": "p.png"})

        with pytest.raises(StorageError, match="did not include a url"):
            await make_client(handler).put("p.png", b"x")

    async def test_download_returns_bytes(self):
        def handler(request):
            assert str(request.url) == "https://cdn.kie.test/out.png"
            return httpx.Response(200, content=b"\x89PNG")

        data = await make_client(handler).download("https://cdn.kie.test/out.png")

        assert data == b"\x89PNG"

    async def test_download_not_found(self):
        def handler(request):
            return httpx.Response(404, text="missing")

        with pytest.raises(StorageError, match="Download failed"):
            await make_client(handler).download("https://cdn.kie.test/missing.png")

    async def test_download_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(StorageError, match="timeout"):
            await make_client(handler).download("https://cdn.kie.test/slow.png")
