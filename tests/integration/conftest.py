"""集成测试配置和共享 fixtures."""

from pathlib import Path

import pytest

from certdesigner.models.app_settings import Settings


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """所有路径都在临时目录下的设置."""
    return Settings(
        _env_file=None,
        data_dir=tmp_path / "data",
        log_dir=tmp_path / "logs",
        storage_dir=tmp_path / "storage",
        user_id="user-1",
    )
