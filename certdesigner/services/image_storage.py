"""图片存储服务.

图片元素替换图片时，先同步得到本地预览地址用于立即显示，
再异步上传到持久存储，完成后用持久地址替换。

Features:
    - 上传前校验（大小、格式）并按最大边长压缩
    - 本地目录存储
    - HTTP 对象存储（httpx 异步客户端）
"""

from __future__ import annotations

import asyncio
import io
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import httpx
from PIL import Image, UnidentifiedImageError

from certdesigner.utils.constants import (
    UPLOAD_ALLOWED_FORMATS,
    UPLOAD_MAX_BYTES,
    UPLOAD_MAX_DIMENSION,
    UPLOAD_QUALITY,
)
from certdesigner.utils.exceptions import ImageValidationError, UploadError
from certdesigner.utils.logger import setup_logger

if TYPE_CHECKING:
    from certdesigner.models.app_settings import Settings

logger = setup_logger(__name__)


# 格式对应的扩展名和 MIME 类型
FORMAT_EXTENSIONS = {"JPEG": ".jpg", "PNG": ".png", "WEBP": ".webp"}
FORMAT_CONTENT_TYPES = {"JPEG": "image/jpeg", "PNG": "image/png", "WEBP": "image/webp"}


@dataclass(frozen=True)
class PreparedImage:
    """校验并压缩后的图片."""

    data: bytes
    format: str
    size: tuple[int, int]

    @property
    def extension(self) -> str:
        return FORMAT_EXTENSIONS[self.format]

    @property
    def content_type(self) -> str:
        return FORMAT_CONTENT_TYPES[self.format]


def validate_and_optimize_image(
    file_path: str | Path,
    max_bytes: int = UPLOAD_MAX_BYTES,
    max_dimension: int = UPLOAD_MAX_DIMENSION,
    quality: int = UPLOAD_QUALITY,
    allowed_formats: frozenset[str] | set[str] = frozenset(UPLOAD_ALLOWED_FORMATS),
) -> PreparedImage:
    """校验上传图片，超出最大边长时等比缩小.

    Args:
        file_path: 图片路径
        max_bytes: 文件大小上限
        max_dimension: 最大边长
        quality: 压缩质量
        allowed_formats: 允许的格式

    Returns:
        PreparedImage

    Raises:
        ImageValidationError: 文件不存在、过大、格式不支持或无法读取
    """
    path = Path(file_path)
    if not path.is_file():
        raise ImageValidationError(f"文件不存在: {path}")

    file_size = path.stat().st_size
    if file_size > max_bytes:
        raise ImageValidationError(
            f"文件大小超过上限 {max_bytes / 1024 / 1024:.0f}MB"
        )

    raw = path.read_bytes()
    try:
        with Image.open(io.BytesIO(raw)) as img:
            img_format = (img.format or "").upper()
            if img_format not in allowed_formats:
                raise ImageValidationError(
                    f"不支持的图片格式 {img_format or '未知'}，允许: {', '.join(sorted(allowed_formats))}"
                )

            if img.width <= max_dimension and img.height <= max_dimension:
                return PreparedImage(raw, img_format, (img.width, img.height))

            resized = img.copy()
            resized.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)
            if img_format == "JPEG" and resized.mode not in ("RGB", "L"):
                resized = resized.convert("RGB")

            buffer = io.BytesIO()
            save_kwargs = {"quality": quality} if img_format in ("JPEG", "WEBP") else {"optimize": True}
            resized.save(buffer, format=img_format, **save_kwargs)
            logger.debug(f"图片已压缩: {img.size} -> {resized.size}")
            return PreparedImage(buffer.getvalue(), img_format, resized.size)
    except (UnidentifiedImageError, OSError) as e:
        raise ImageValidationError(f"无法读取图片: {e}") from e


# ===================
# 存储基类
# ===================


class ImageStorage(ABC):
    """图片存储基类."""

    def __init__(
        self,
        max_bytes: int = UPLOAD_MAX_BYTES,
        max_dimension: int = UPLOAD_MAX_DIMENSION,
    ) -> None:
        self._max_bytes = max_bytes
        self._max_dimension = max_dimension

    def local_preview(self, file_path: str | Path) -> str:
        """获取本地临时预览地址（同步，可立即显示）."""
        return Path(file_path).resolve().as_uri()

    def prepare(self, file_path: str | Path) -> PreparedImage:
        """校验并压缩图片."""
        return validate_and_optimize_image(
            file_path,
            max_bytes=self._max_bytes,
            max_dimension=self._max_dimension,
        )

    @staticmethod
    def object_name(user_id: str, image: PreparedImage) -> str:
        """生成存储对象路径 ``<user_id>/<uuid><ext>``."""
        return f"{user_id}/{uuid.uuid4().hex}{image.extension}"

    @abstractmethod
    async def upload(self, file_path: str | Path, user_id: str) -> str:
        """上传图片.

        Args:
            file_path: 本地图片路径
            user_id: 用户标识

        Returns:
            持久地址
        """


# ===================
# 本地存储
# ===================


class LocalImageStorage(ImageStorage):
    """本地目录存储，返回 file:// 地址."""

    def __init__(self, storage_dir: str | Path, **kwargs) -> None:
        super().__init__(**kwargs)
        self._storage_dir = Path(storage_dir)

    @property
    def storage_dir(self) -> Path:
        return self._storage_dir

    def _store(self, file_path: str | Path, user_id: str) -> str:
        image = self.prepare(file_path)
        target = self._storage_dir / self.object_name(user_id, image)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(image.data)
        except OSError as e:
            raise UploadError(f"写入存储目录失败: {e}") from e
        return target.resolve().as_uri()

    async def upload(self, file_path: str | Path, user_id: str) -> str:
        loop = asyncio.get_running_loop()
        url = await loop.run_in_executor(None, self._store, file_path, user_id)
        logger.info(f"图片已保存: {url}")
        return url


# ===================
# HTTP 对象存储
# ===================


class HttpImageStorage(ImageStorage):
    """HTTP 对象存储.

    以 ``POST {base_url}/storage/v1/object/{bucket}/{path}`` 上传，
    返回 ``{base_url}/storage/v1/object/public/{bucket}/{path}`` 公开地址。
    """

    def __init__(
        self,
        base_url: str,
        bucket: str,
        api_key: Optional[str] = None,
        timeout: int = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self._base_url = base_url.rstrip("/")
        self._bucket = bucket
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    def create_client(self) -> httpx.AsyncClient:
        """创建 HTTP 客户端.

        每次上传使用独立的客户端并在上传结束时关闭，并发上传（各自在
        自己线程的事件循环中）互不影响。
        """
        headers = {}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
            headers["apikey"] = self._api_key
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport, headers=headers)

    def public_url(self, object_name: str) -> str:
        """对象的公开访问地址."""
        return f"{self._base_url}/storage/v1/object/public/{self._bucket}/{object_name}"

    async def upload(self, file_path: str | Path, user_id: str) -> str:
        loop = asyncio.get_running_loop()
        image = await loop.run_in_executor(None, self.prepare, file_path)
        object_name = self.object_name(user_id, image)
        url = f"{self._base_url}/storage/v1/object/{self._bucket}/{object_name}"

        try:
            async with self.create_client() as client:
                response = await client.post(
                    url,
                    content=image.data,
                    headers={"Content-Type": image.content_type, "x-upsert": "false"},
                )
        except httpx.TimeoutException as e:
            logger.error(f"上传超时: {self._timeout}s")
            raise UploadError(f"上传超时 ({self._timeout}秒)") from e
        except httpx.HTTPError as e:
            logger.error(f"无法连接到存储服务: {e}")
            raise UploadError(f"无法连接到存储服务: {e}") from e

        if response.status_code >= 400:
            raise UploadError(response.text or response.reason_phrase, response.status_code)

        public = self.public_url(object_name)
        logger.info(f"图片已上传: {public}")
        return public


def create_image_storage(settings: "Settings") -> ImageStorage:
    """根据设置创建图片存储."""
    limits = {
        "max_bytes": settings.upload_max_bytes,
        "max_dimension": settings.upload_max_dimension,
    }
    if settings.storage_base_url:
        return HttpImageStorage(
            settings.storage_base_url,
            settings.storage_bucket,
            api_key=settings.storage_api_key,
            timeout=settings.storage_timeout,
            **limits,
        )
    return LocalImageStorage(settings.storage_dir, **limits)
