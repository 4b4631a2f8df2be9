"""服务层模块."""

from certdesigner.services.database_service import (
    DatabaseService,
    get_database_service,
    reset_database_service,
)
from certdesigner.services.image_storage import (
    HttpImageStorage,
    ImageStorage,
    LocalImageStorage,
    create_image_storage,
    validate_and_optimize_image,
)
from certdesigner.services.template_manager import (
    TemplateManager,
    TemplateMetadata,
    create_certificate_design,
)
from certdesigner.services.template_renderer import (
    TemplateRenderer,
    find_font,
    render_document,
    resolve_elements,
)

__all__ = [
    # 数据库
    "DatabaseService",
    "get_database_service",
    "reset_database_service",
    # 图片存储
    "ImageStorage",
    "LocalImageStorage",
    "HttpImageStorage",
    "create_image_storage",
    "validate_and_optimize_image",
    # 模板管理
    "TemplateManager",
    "TemplateMetadata",
    "create_certificate_design",
    # 渲染
    "TemplateRenderer",
    "find_font",
    "render_document",
    "resolve_elements",
]
