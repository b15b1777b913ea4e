"""Tests for the gridist web API."""

import asyncio
import zipfile
from io import BytesIO

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from gridist import __version__, server
from gridist.errors import EncodeError
from gridist.layout import SLOT_COUNT


@pytest.fixture
def client() -> TestClient:
    return TestClient(server.app)


def create_test_image_bytes(size=(300, 150), image_format: str = "PNG") -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, "teal").save(buffer, format=image_format)
    return buffer.getvalue()


def upload(client: TestClient, filename: str, content: bytes, **fields):
    return client.post(
        "/api/grid",
        files={"image": (filename, content, "application/octet-stream")},
        data={key: str(value) for key, value in fields.items()},
    )


class TestHealth:
    """Tests for the health endpoint."""

    def test_health(self, client: TestClient) -> None:
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": __version__}


class TestGridEndpoint:
    """Tests for POST /api/grid."""

    def test_returns_zip_of_tiles(self, client: TestClient) -> None:
        response = upload(client, "sample.png", create_test_image_bytes())

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/zip"
        assert 'filename="sample.grid.zip"' in response.headers["content-disposition"]
        with zipfile.ZipFile(BytesIO(response.content)) as archive:
            names = archive.namelist()
            assert names == [f"sample.{i}.png" for i in range(SLOT_COUNT)]
            with Image.open(BytesIO(archive.read(names[0]))) as tile:
                assert tile.size == (422, 100)

    def test_custom_geometry(self, client: TestClient) -> None:
        response = upload(
            client, "sample.jpg", create_test_image_bytes(image_format="JPEG"),
            containerWidth=200, cutWidth=80, cutHeight=20, paddingTop=5,
            paddingHorizontal=10, paddingBottom=5, marginBottom=4,
        )

        assert response.status_code == 200
        with zipfile.ZipFile(BytesIO(response.content)) as archive:
            with Image.open(BytesIO(archive.read("sample.3.jpg"))) as tile:
                assert tile.format == "JPEG"
                assert tile.size == (80, 20)

    def test_gif_upload(self, client: TestClient) -> None:
        frames = [Image.new("P", (60, 30), i) for i in range(2)]
        for frame in frames:
            frame.putpalette([255, 0, 0, 0, 0, 255])
        buffer = BytesIO()
        frames[0].save(buffer, format="GIF", save_all=True, append_images=frames[1:], duration=80)

        response = upload(client, "anim.gif", buffer.getvalue())

        assert response.status_code == 200
        with zipfile.ZipFile(BytesIO(response.content)) as archive:
            assert archive.namelist()[0] == "anim.0.gif"
            with Image.open(BytesIO(archive.read("anim.5.gif"))) as tile:
                assert tile.n_frames == 2

    def test_invalid_geometry_is_client_error(self, client: TestClient) -> None:
        response = upload(client, "sample.png", create_test_image_bytes(), cutWidth=1000)
        assert response.status_code == 400
        assert "exceeds" in response.json()["error"]

    def test_undecodable_image_is_client_error(self, client: TestClient) -> None:
        response = upload(client, "sample.png", b"not an image")
        assert response.status_code == 400
        assert "Failed to open image" in response.json()["error"]

    def test_missing_extension_is_client_error(self, client: TestClient) -> None:
        response = upload(client, "sample", create_test_image_bytes())
        assert response.status_code == 400

    def test_empty_upload(self, client: TestClient) -> None:
        response = upload(client, "sample.png", b"")
        assert response.status_code == 400
        assert response.json()["error"] == "Uploaded file is empty."

    def test_missing_image_field(self, client: TestClient) -> None:
        response = client.post("/api/grid", data={"cutWidth": "100"})
        assert response.status_code == 422

    def test_oversized_upload(self, client: TestClient, monkeypatch) -> None:
        monkeypatch.setattr(server, "MAX_UPLOAD_BYTES", 16)
        response = upload(client, "sample.png", create_test_image_bytes())
        assert response.status_code == 413

    def test_encode_failure_is_server_error(self, client: TestClient, monkeypatch) -> None:
        def failing_crop(*args):
            raise EncodeError("disk on fire")

        monkeypatch.setattr(server, "crop_bytes", failing_crop)
        response = upload(client, "sample.png", create_test_image_bytes())
        assert response.status_code == 500
        assert "disk on fire" in response.json()["error"]

    def test_unexpected_failure_is_server_error(self, client: TestClient, monkeypatch) -> None:
        def failing_crop(*args):
            raise RuntimeError("unexpected")

        monkeypatch.setattr(server, "crop_bytes", failing_crop)
        response = upload(client, "sample.png", create_test_image_bytes())
        assert response.status_code == 500


class FakeUpload:
    """Stands in for UploadFile, recording how many bytes were asked for."""

    def __init__(self, content: bytes, size=None) -> None:
        self.content = content
        self.size = size
        self.requested = []

    async def read(self, size: int = -1) -> bytes:
        self.requested.append(size)
        return self.content if size < 0 else self.content[:size]


class TestReadUpload:
    """Tests for the bounded upload reader."""

    def test_declared_size_over_limit_is_not_read(self) -> None:
        fake = FakeUpload(bytes(100), size=100)
        assert asyncio.run(server.read_upload(fake, 10)) is None
        assert fake.requested == []

    def test_reads_at_most_one_byte_past_limit(self) -> None:
        fake = FakeUpload(bytes(100))
        assert asyncio.run(server.read_upload(fake, 10)) is None
        assert fake.requested == [11]

    def test_content_within_limit(self) -> None:
        fake = FakeUpload(b"tiny", size=4)
        assert asyncio.run(server.read_upload(fake, 10)) == b"tiny"
        assert fake.requested == [11]
