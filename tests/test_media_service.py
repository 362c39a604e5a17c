import cloudinary.uploader
import pytest
from cloudinary.exceptions import Error as CloudinaryError

from core.exceptions import UpstreamMediaError
from services.media_service import CloudinaryMediaStore, LocalMediaStore

CLOUD_URL = "https://res.cloudinary.com/demo/image/upload/v1712/quiz-share/{}.jpg"


def cloudinary_store():
    return CloudinaryMediaStore("demo", "key", "secret", folder="quiz-share")


class TestLocalMediaStore:
    @pytest.mark.asyncio
    async def test_upload_then_delete(self, tmp_path):
        store = LocalMediaStore(root=str(tmp_path), url_prefix="/media/")

        url = await store.upload_image(b"png-bytes", "Me.PNG")

        assert url.startswith("/media/") and url.endswith(".png")
        stored = tmp_path / url.rsplit("/", 1)[1]
        assert stored.read_bytes() == b"png-bytes"

        assert await store.delete_images([url, "https://elsewhere.test/x.png"]) == 1
        assert not stored.exists()

    @pytest.mark.asyncio
    async def test_deleting_missing_file_is_quiet(self, tmp_path):
        store = LocalMediaStore(root=str(tmp_path), url_prefix="/media")
        assert await store.delete_images(["/media/gone.jpg"]) == 0


class TestCloudinaryMediaStore:
    def test_public_id_from_url(self):
        store = cloudinary_store()

        assert store.public_id_from_url(CLOUD_URL.format("abc123")) == "quiz-share/abc123"
        assert store.public_id_from_url(
            "https://res.cloudinary.com/demo/image/upload/quiz-share/plain.png"
        ) == "quiz-share/plain"
        assert store.public_id_from_url("https://res.cloudinary.com/other/image/upload/v1/x.jpg") is None
        assert store.public_id_from_url("/media/local.jpg") is None

    @pytest.mark.asyncio
    async def test_upload_returns_secure_url(self, monkeypatch):
        calls = []

        def fake_upload(file, **options):
            calls.append((file.read(), options))
            return {"secure_url": CLOUD_URL.format("new")}

        monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)

        url = await cloudinary_store().upload_image(b"jpeg", "me.jpg")

        assert url == CLOUD_URL.format("new")
        data, options = calls[0]
        assert data == b"jpeg"
        assert options["folder"] == "quiz-share"
        assert options["cloud_name"] == "demo"
        assert options["api_secret"] == "secret"

    @pytest.mark.asyncio
    async def test_upload_failure_raises(self, monkeypatch):
        def failing_upload(file, **options):
            raise CloudinaryError("Server returned unexpected status code - 502")

        monkeypatch.setattr(cloudinary.uploader, "upload", failing_upload)

        with pytest.raises(UpstreamMediaError):
            await cloudinary_store().upload_image(b"jpeg", "me.jpg")

    @pytest.mark.asyncio
    async def test_delete_images_continues_past_failures(self, monkeypatch):
        destroyed = []

        def fake_destroy(public_id, **options):
            if public_id.endswith("broken"):
                raise CloudinaryError("Server returned unexpected status code - 500")
            destroyed.append(public_id)
            return {"result": "not found" if public_id.endswith("gone") else "ok"}

        monkeypatch.setattr(cloudinary.uploader, "destroy", fake_destroy)
        urls = [CLOUD_URL.format(name) for name in ("one", "broken", "gone")] + ["/media/local.jpg"]

        assert await cloudinary_store().delete_images(urls) == 2
        assert destroyed == ["quiz-share/one", "quiz-share/gone"]

    @pytest.mark.asyncio
    async def test_unexpected_destroy_result(self, monkeypatch):
        monkeypatch.setattr(cloudinary.uploader, "destroy", lambda public_id, **options: {"result": "error"})
        with pytest.raises(UpstreamMediaError):
            await cloudinary_store().delete_image("quiz-share/one")
