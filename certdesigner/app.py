"""应用初始化和管理."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from certdesigner.utils.logger import configure_logging, setup_logger

if TYPE_CHECKING:
    from certdesigner.models.app_settings import Settings
    from certdesigner.services.database_service import DatabaseService
    from certdesigner.services.image_storage import ImageStorage
    from certdesigner.services.template_manager import TemplateManager
    from certdesigner.ui.dialogs.template_editor_window import TemplateEditorWindow

logger = setup_logger(__name__)


class Application:
    """应用管理类.

    负责应用的初始化、配置加载和资源管理。

    Attributes:
        settings: 应用设置
        template_manager: 模板管理器
        image_storage: 图片存储
    """

    def __init__(self, settings: Optional["Settings"] = None) -> None:
        self.settings = settings
        self._db_service: Optional["DatabaseService"] = None
        self.template_manager: Optional["TemplateManager"] = None
        self.image_storage: Optional["ImageStorage"] = None
        self._main_window: Optional["TemplateEditorWindow"] = None
        self._initialized: bool = False

    def initialize(self) -> None:
        """初始化应用.

        执行以下初始化步骤:
        1. 加载配置并配置日志
        2. 确保应用数据目录存在
        3. 初始化数据库
        4. 初始化服务
        """
        if self._initialized:
            logger.warning("应用已初始化，跳过重复初始化")
            return

        self._load_settings()
        logger.info("开始初始化应用...")
        self._ensure_data_directory()
        self._init_database()
        self._init_services()

        self._initialized = True
        logger.info("应用初始化完成")

    def _load_settings(self) -> None:
        from certdesigner.models.app_settings import get_settings

        if self.settings is None:
            self.settings = get_settings()
        configure_logging(self.settings.log_dir, self.settings.log_level)
        logger.debug(f"日志级别: {self.settings.log_level}")

    def _ensure_data_directory(self) -> None:
        assert self.settings is not None
        self.settings.data_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"数据目录: {self.settings.data_dir}")

    def _init_database(self) -> None:
        from certdesigner.services.database_service import DatabaseService

        assert self.settings is not None
        self._db_service = DatabaseService(self.settings.db_url)
        self._db_service.init_db()
        logger.debug("数据库初始化完成")

    def _init_services(self) -> None:
        from certdesigner.services.image_storage import create_image_storage
        from certdesigner.services.template_manager import TemplateManager

        assert self.settings is not None and self._db_service is not None
        self.template_manager = TemplateManager(self._db_service, self.settings.user_id)
        self.image_storage = create_image_storage(self.settings)
        logger.debug(f"服务初始化完成: 存储={type(self.image_storage).__name__}")

    def show_main_window(self) -> None:
        """显示模板编辑器窗口."""
        from certdesigner.services.template_renderer import TemplateRenderer
        from certdesigner.ui.dialogs.template_editor_window import TemplateEditorWindow

        assert self.template_manager is not None and self.image_storage is not None
        if self._main_window is None:
            renderer = TemplateRenderer(scale=self.settings.preview_scale if self.settings else 1.0)
            self._main_window = TemplateEditorWindow(
                self.template_manager,
                self.image_storage,
                renderer,
            )

        self._main_window.show()
        logger.info("主窗口已显示")

    def cleanup(self) -> None:
        """清理应用资源."""
        logger.info("开始清理应用资源...")
        if self._db_service:
            self._db_service.close()
        logger.info("应用资源清理完成")

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def db_service(self) -> Optional["DatabaseService"]:
        return self._db_service
