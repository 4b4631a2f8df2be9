"""Pytest 配置和共享 fixtures."""

import os

import pytest
from PIL import Image

# Qt 测试在无显示环境下运行
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from certdesigner.models.template_config import (  # noqa: E402
    BoxSpacing,
    DesignDocument,
    Element,
    ElementType,
    PageSize,
    TemplateProperties,
    Unit,
)
from certdesigner.services.database_service import DatabaseService  # noqa: E402
from certdesigner.services.template_manager import TemplateManager  # noqa: E402


@pytest.fixture
def sample_data() -> dict:
    """返回示例绑定数据."""
    return {
        "recipient": {"name": "张三", "email": "zhangsan@example.com"},
        "certificate": {"title": "结业证书", "date": "2024-06-01"},
    }


@pytest.fixture
def px_properties() -> TemplateProperties:
    """1000×500 像素页面，外边距 10px，内边距 40px（内容区 900×400）."""
    return TemplateProperties(
        size=PageSize(width=1000, height=500, unit=Unit.PX),
        margins=BoxSpacing(top=10, right=10, bottom=10, left=10, unit=Unit.PX),
        padding=BoxSpacing(top=40, right=40, bottom=40, left=40, unit=Unit.PX),
    )


@pytest.fixture
def sample_document(px_properties: TemplateProperties) -> DesignDocument:
    """包含四种元素的设计文档."""
    return DesignDocument(
        elements=[
            Element.create(ElementType.SHAPE, x=0, y=0, style={"width": "100px", "height": "20px"}),
            Element.create(ElementType.TEXT, "Certificate", x=10, y=10),
            Element.create(ElementType.PLACEHOLDER, "{{recipient.name}}", x=20, y=40),
            Element.create(ElementType.IMAGE, "", x=70, y=60),
        ],
        properties=px_properties,
    )


@pytest.fixture
def db_service(tmp_path):
    """临时 SQLite 数据库服务."""
    service = DatabaseService(f"sqlite:///{tmp_path / 'templates.db'}")
    service.init_db()
    yield service
    service.close()


@pytest.fixture
def manager(db_service) -> TemplateManager:
    """当前用户 user-1 的模板管理器."""
    return TemplateManager(db_service, user_id="user-1")


@pytest.fixture
def png_file(tmp_path):
    """创建 64×32 的 PNG 图片."""
    path = tmp_path / "logo.png"
    Image.new("RGBA", (64, 32), (255, 0, 0, 255)).save(path, format="PNG")
    return path
