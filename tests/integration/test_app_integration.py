"""应用初始化集成测试."""

from certdesigner.app import Application
from certdesigner.models.app_settings import Settings
from certdesigner.services.image_storage import LocalImageStorage


class TestApplication:
    """Application 测试类."""

    def test_initialize(self, settings):
        """测试初始化创建数据目录、数据库和服务."""
        app = Application(settings)
        app.initialize()
        try:
            assert app.is_initialized
            assert settings.data_dir.is_dir()
            assert (settings.data_dir / "templates.db").exists()
            assert isinstance(app.image_storage, LocalImageStorage)
            assert app.template_manager.user_id == "user-1"
            assert app.template_manager.list_templates() == []
        finally:
            app.cleanup()

    def test_initialize_twice(self, settings):
        """测试重复初始化被忽略."""
        app = Application(settings)
        app.initialize()
        db = app.db_service
        app.initialize()
        assert app.db_service is db
        app.cleanup()


class TestSettings:
    """设置加载测试类."""

    def test_env_prefix(self, monkeypatch, tmp_path):
        """测试从环境变量加载."""
        monkeypatch.setenv("CERTDESIGNER_USER_ID", "alice")
        monkeypatch.setenv("CERTDESIGNER_LOG_LEVEL", "debug")
        monkeypatch.setenv("CERTDESIGNER_DATA_DIR", str(tmp_path))
        settings = Settings(_env_file=None)
        assert settings.user_id == "alice"
        assert settings.log_level == "DEBUG"
        assert settings.db_url == f"sqlite:///{tmp_path / 'templates.db'}"

    def test_database_url_override(self):
        """测试显式数据库地址."""
        settings = Settings(_env_file=None, database_url="sqlite:///:memory:")
        assert settings.db_url == "sqlite:///:memory:"
