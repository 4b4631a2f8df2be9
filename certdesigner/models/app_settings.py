"""应用设置模型."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from certdesigner.utils.constants import (
    APP_DATA_DIR,
    DATABASE_PATH,
    DEFAULT_STORAGE_BUCKET,
    HTTP_TIMEOUT,
    LOG_DIR,
    PREVIEW_SCALE,
    STORAGE_DIR,
    UPLOAD_MAX_BYTES,
    UPLOAD_MAX_DIMENSION,
)


class Settings(BaseSettings):
    """应用设置.

    支持从环境变量（前缀 ``CERTDESIGNER_``）和 .env 文件加载配置。

    Attributes:
        log_level: 日志级别
        log_dir: 日志目录
        data_dir: 应用数据目录
        database_url: 模板存储数据库地址
        user_id: 当前用户标识
        storage_dir: 本地图片存储目录
        storage_base_url: 远程对象存储地址，设置后使用 HTTP 上传
        storage_bucket: 存储桶名称
        storage_api_key: 对象存储访问密钥
        upload_max_bytes: 上传文件大小上限
        upload_max_dimension: 上传图片最大边长
        preview_scale: 预览渲染缩放比例
    """

    model_config = SettingsConfigDict(
        env_prefix="CERTDESIGNER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = Field(default="INFO", description="日志级别")
    log_dir: Path = Field(default=LOG_DIR, description="日志目录")
    data_dir: Path = Field(default=APP_DATA_DIR, description="应用数据目录")

    # 模板存储
    database_url: Optional[str] = Field(default=None, description="数据库地址")
    user_id: str = Field(default="local", min_length=1, description="当前用户")

    # 图片存储
    storage_dir: Path = Field(default=STORAGE_DIR, description="本地存储目录")
    storage_base_url: Optional[str] = Field(default=None, description="对象存储地址")
    storage_bucket: str = Field(default=DEFAULT_STORAGE_BUCKET, description="存储桶")
    storage_api_key: Optional[str] = Field(default=None, description="存储访问密钥")
    storage_timeout: int = Field(default=HTTP_TIMEOUT, ge=1, le=300, description="上传超时")

    # 上传限制
    upload_max_bytes: int = Field(default=UPLOAD_MAX_BYTES, ge=1024, description="文件大小上限")
    upload_max_dimension: int = Field(
        default=UPLOAD_MAX_DIMENSION,
        ge=100,
        le=10000,
        description="图片最大边长",
    )

    # 预览
    preview_scale: float = Field(default=PREVIEW_SCALE, gt=0, le=10, description="预览缩放")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """验证日志级别."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"无效的日志级别: {v}，有效值: {valid_levels}")
        return upper_v

    @property
    def db_url(self) -> str:
        """获取数据库地址（默认使用数据目录下的 SQLite 文件）."""
        return self.database_url or f"sqlite:///{self.data_dir / DATABASE_PATH.name}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """获取全局设置（缓存）."""
    return Settings()
