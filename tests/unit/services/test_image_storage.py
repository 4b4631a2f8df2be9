"""图片存储服务单元测试."""

import asyncio
import io
from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx
import pytest
from PIL import Image

from certdesigner.models.app_settings import Settings
from certdesigner.services.image_storage import (
    HttpImageStorage,
    LocalImageStorage,
    create_image_storage,
    validate_and_optimize_image,
)
from certdesigner.utils.exceptions import ImageValidationError, UploadError


class TestValidateImage:
    """上传前校验测试类."""

    def test_valid_png_unchanged(self, png_file):
        """测试未超出尺寸的图片原样返回."""
        prepared = validate_and_optimize_image(png_file)
        assert prepared.format == "PNG"
        assert prepared.size == (64, 32)
        assert prepared.data == png_file.read_bytes()
        assert prepared.extension == ".png"
        assert prepared.content_type == "image/png"

    def test_missing_file(self, tmp_path):
        """测试文件不存在."""
        with pytest.raises(ImageValidationError):
            validate_and_optimize_image(tmp_path / "missing.png")

    def test_oversize_file(self, png_file):
        """测试文件超过大小上限."""
        with pytest.raises(ImageValidationError):
            validate_and_optimize_image(png_file, max_bytes=10)

    def test_unsupported_format(self, tmp_path):
        """测试不支持的格式."""
        path = tmp_path / "image.bmp"
        Image.new("RGB", (10, 10)).save(path, format="BMP")
        with pytest.raises(ImageValidationError):
            validate_and_optimize_image(path)

    def test_not_an_image(self, tmp_path):
        """测试无法识别的文件."""
        path = tmp_path / "fake.png"
        path.write_bytes(b"not an image")
        with pytest.raises(ImageValidationError):
            validate_and_optimize_image(path)

    def test_downscale_large_image(self, tmp_path):
        """测试超出最大边长时等比缩小."""
        path = tmp_path / "large.jpg"
        Image.new("RGB", (400, 200), (0, 128, 255)).save(path, format="JPEG")
        prepared = validate_and_optimize_image(path, max_dimension=100)
        assert prepared.size == (100, 50)
        with Image.open(io.BytesIO(prepared.data)) as img:
            assert img.format == "JPEG"
            assert img.size == (100, 50)


class TestLocalImageStorage:
    """本地存储测试类."""

    def test_local_preview(self, png_file, tmp_path):
        """测试本地预览地址."""
        storage = LocalImageStorage(tmp_path / "storage")
        assert storage.local_preview(png_file).startswith("file://")

    @pytest.mark.asyncio
    async def test_upload(self, png_file, tmp_path):
        """测试上传到用户目录."""
        storage = LocalImageStorage(tmp_path / "storage")
        url = await storage.upload(png_file, "user-1")

        stored = Path(url2pathname(urlparse(url).path))
        assert stored.parent.name == "user-1"
        assert stored.suffix == ".png"
        assert stored.read_bytes() == png_file.read_bytes()

    @pytest.mark.asyncio
    async def test_upload_unique_names(self, png_file, tmp_path):
        """测试每次上传生成新的对象名."""
        storage = LocalImageStorage(tmp_path / "storage")
        first = await storage.upload(png_file, "user-1")
        second = await storage.upload(png_file, "user-1")
        assert first != second

    @pytest.mark.asyncio
    async def test_upload_invalid_image(self, tmp_path):
        """测试校验失败时不写入."""
        storage = LocalImageStorage(tmp_path / "storage")
        with pytest.raises(ImageValidationError):
            await storage.upload(tmp_path / "missing.png", "user-1")
        assert not (tmp_path / "storage").exists()


class TestHttpImageStorage:
    """HTTP 对象存储测试类."""

    @pytest.mark.asyncio
    async def test_upload_posts_to_bucket(self, png_file):
        """测试上传请求和返回的公开地址."""
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"Key": "ok"})

        storage = HttpImageStorage(
            "https://storage.example.com/",
            "certificates",
            api_key="secret",
            transport=httpx.MockTransport(handler),
        )
        url = await storage.upload(png_file, "user-1")

        request = requests[0]
        assert request.method == "POST"
        assert request.url.path.startswith("/storage/v1/object/certificates/user-1/")
        assert request.headers["Authorization"] == "Bearer secret"
        assert request.headers["Content-Type"] == "image/png"
        assert request.content == png_file.read_bytes()
        object_name = request.url.path.removeprefix("/storage/v1/object/certificates/")
        assert url == f"https://storage.example.com/storage/v1/object/public/certificates/{object_name}"

    @pytest.mark.asyncio
    async def test_concurrent_uploads(self, png_file):
        """测试同一存储上的并发上传互不影响."""
        in_flight = 0
        both_started = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal in_flight
            in_flight += 1
            if in_flight == 2:
                both_started.set()
            await asyncio.wait_for(both_started.wait(), timeout=5)
            return httpx.Response(200, json={"Key": "ok"})

        storage = HttpImageStorage(
            "https://storage.example.com",
            "certificates",
            transport=httpx.MockTransport(handler),
        )
        first, second = await asyncio.gather(
            storage.upload(png_file, "user-a"),
            storage.upload(png_file, "user-b"),
        )
        assert "/certificates/user-a/" in first
        assert "/certificates/user-b/" in second

    @pytest.mark.asyncio
    async def test_upload_error_status(self, png_file):
        """测试服务端返回错误状态码."""
        storage = HttpImageStorage(
            "https://storage.example.com",
            "certificates",
            transport=httpx.MockTransport(lambda request: httpx.Response(403, text="denied")),
        )
        with pytest.raises(UploadError) as exc_info:
            await storage.upload(png_file, "user-1")
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_connection_error(self, png_file):
        """测试连接失败."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        storage = HttpImageStorage(
            "https://storage.example.com",
            "certificates",
            transport=httpx.MockTransport(handler),
        )
        with pytest.raises(UploadError):
            await storage.upload(png_file, "user-1")


class TestCreateImageStorage:
    """存储工厂测试类."""

    def test_local_by_default(self, tmp_path):
        """测试未配置远程地址时使用本地存储."""
        storage = create_image_storage(Settings(storage_dir=tmp_path, _env_file=None))
        assert isinstance(storage, LocalImageStorage)
        assert storage.storage_dir == tmp_path

    def test_http_when_configured(self):
        """测试配置远程地址时使用 HTTP 存储."""
        settings = Settings(storage_base_url="https://storage.example.com", _env_file=None)
        assert isinstance(create_image_storage(settings), HttpImageStorage)
