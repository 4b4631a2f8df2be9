"""模板管理服务.

模板持久化桥接：以整个设计文档为单位读写模板记录。

Features:
    - 加载模板（缺失的页面属性自动补全）
    - 保存设计文档（整体替换，更新时间由存储端分配）
    - 新建、列表、重命名、公开设置、复制、删除
    - 导入/导出模板文件（.template.json）
    - 默认证书设计
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError

from certdesigner.models.database import TemplateRecord
from certdesigner.models.template_config import (
    Background,
    DesignDocument,
    Element,
    ElementType,
    Orientation,
    Template,
    TemplateProperties,
)
from certdesigner.services.database_service import DatabaseService
from certdesigner.utils.exceptions import (
    PersistenceError,
    TemplateLoadError,
    TemplateNotFoundError,
    TemplateSaveError,
)
from certdesigner.utils.logger import setup_logger

logger = setup_logger(__name__)


# ===================
# 常量定义
# ===================

# 模板文件扩展名
TEMPLATE_EXTENSION = ".template.json"

# 复制模板的名称后缀
COPY_SUFFIX = " - 副本"


# ===================
# 模板元数据
# ===================


class TemplateMetadata:
    """模板元数据.

    用于模板列表显示，不包含完整设计文档。
    """

    def __init__(
        self,
        id: str,
        name: str,
        description: str = "",
        element_count: int = 0,
        is_public: bool = False,
        user_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ) -> None:
        self.id = id
        self.name = name
        self.description = description
        self.element_count = element_count
        self.is_public = is_public
        self.user_id = user_id
        self.created_at = created_at
        self.updated_at = updated_at

    @classmethod
    def from_template(cls, template: Template) -> "TemplateMetadata":
        """从模板创建元数据."""
        return cls(
            id=template.id,
            name=template.name,
            description=template.description,
            element_count=template.element_count,
            is_public=template.is_public,
            user_id=template.user_id,
            created_at=template.created_at,
            updated_at=template.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """转换为字典."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "element_count": self.element_count,
            "is_public": self.is_public,
            "user_id": self.user_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


def _to_template(record: TemplateRecord) -> Template:
    """数据库记录转换为模板（设计文档缺失字段自动补全）.

    Raises:
        TemplateLoadError: 存储的设计文档无效
    """
    try:
        document = DesignDocument.from_data(record.design_data)
    except ValidationError as e:
        logger.error(f"模板设计数据无效: {record.id}, 错误: {e}")
        raise TemplateLoadError(record.id, f"设计数据无效: {e.error_count()} 处错误") from e
    return Template(
        id=record.id,
        name=record.name,
        description=record.description or "",
        design_data=document,
        is_public=bool(record.is_public),
        user_id=record.user_id,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _to_metadata(record: TemplateRecord) -> TemplateMetadata:
    """数据库记录转换为列表元数据.

    设计数据无效的记录仍然列出（元素数为 0），以便用户删除或重新导入。
    """
    try:
        return TemplateMetadata.from_template(_to_template(record))
    except TemplateLoadError:
        return TemplateMetadata(
            id=record.id,
            name=record.name,
            description=record.description or "",
            is_public=bool(record.is_public),
            user_id=record.user_id,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


# ===================
# 模板管理器
# ===================


class TemplateManager:
    """模板管理器.

    所有操作限定在当前用户的模板范围内。失败时抛出 PersistenceError 子类，
    调用方负责向用户展示错误，编辑器中的数据不受影响，可以重试。

    Example:
        >>> manager = TemplateManager(db, user_id="u1")
        >>> template = manager.create_template("结业证书")
        >>> manager.save_design(template.id, surface.to_document())
        >>> loaded = manager.load_template(template.id)
    """

    def __init__(self, db: DatabaseService, user_id: str) -> None:
        """初始化模板管理器.

        Args:
            db: 数据库服务
            user_id: 当前用户
        """
        self._db = db
        self._user_id = user_id

    @property
    def user_id(self) -> str:
        return self._user_id

    def _get_record(self, session, template_id: str) -> TemplateRecord:
        record = session.get(TemplateRecord, template_id)
        if record is None or record.user_id != self._user_id:
            raise TemplateNotFoundError(template_id)
        return record

    # ========================
    # 读写
    # ========================

    def create_template(
        self,
        name: str,
        description: str = "",
        design: Optional[DesignDocument] = None,
        is_public: bool = False,
    ) -> Template:
        """新建模板.

        Args:
            name: 模板名称
            description: 描述
            design: 初始设计文档，默认为空白页面
            is_public: 是否公开

        Returns:
            新模板
        """
        template_id = str(uuid.uuid4())
        document = design or DesignDocument()
        try:
            with self._db.session_scope() as session:
                record = TemplateRecord(
                    id=template_id,
                    user_id=self._user_id,
                    name=name,
                    description=description,
                    design_data=document.to_dict(),
                    is_public=is_public,
                )
                session.add(record)
                session.flush()
                template = _to_template(record)
        except SQLAlchemyError as e:
            logger.error(f"创建模板失败: {e}")
            raise TemplateSaveError(template_id, str(e)) from e

        logger.info(f"模板已创建: {name} ({template_id})")
        return template

    def load_template(self, template_id: str) -> Template:
        """加载模板.

        Args:
            template_id: 模板 ID

        Returns:
            模板

        Raises:
            TemplateNotFoundError: 模板不存在或不属于当前用户
            TemplateLoadError: 存储访问失败或设计数据无效
        """
        try:
            with self._db.session_scope() as session:
                return _to_template(self._get_record(session, template_id))
        except PersistenceError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"加载模板失败: {template_id}, 错误: {e}")
            raise TemplateLoadError(template_id, str(e)) from e

    def load_public_template(self, template_id: str) -> Template:
        """加载自己的或其他用户公开的模板（只读使用）.

        Raises:
            TemplateNotFoundError: 模板不存在或未公开
        """
        try:
            with self._db.session_scope() as session:
                record = session.get(TemplateRecord, template_id)
                if record is None or (record.user_id != self._user_id and not record.is_public):
                    raise TemplateNotFoundError(template_id)
                return _to_template(record)
        except PersistenceError:
            raise
        except SQLAlchemyError as e:
            raise TemplateLoadError(template_id, str(e)) from e

    def save_design(self, template_id: str, document: DesignDocument) -> Template:
        """保存设计文档（整体替换）.

        Args:
            template_id: 模板 ID
            document: 设计文档

        Returns:
            保存后的模板（含存储端分配的更新时间）

        Raises:
            TemplateNotFoundError: 模板不存在或不属于当前用户
            TemplateSaveError: 存储写入失败
        """
        try:
            with self._db.session_scope() as session:
                record = self._get_record(session, template_id)
                record.design_data = document.to_dict()
                session.flush()
                template = _to_template(record)
        except PersistenceError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"保存模板失败: {template_id}, 错误: {e}")
            raise TemplateSaveError(template_id, str(e)) from e

        logger.info(f"模板已保存: {template_id} ({len(document.elements)} 个元素)")
        return template

    def update_metadata(
        self,
        template_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        is_public: Optional[bool] = None,
    ) -> Template:
        """更新模板名称、描述或公开状态."""
        try:
            with self._db.session_scope() as session:
                record = self._get_record(session, template_id)
                if name is not None:
                    record.name = name
                if description is not None:
                    record.description = description
                if is_public is not None:
                    record.is_public = is_public
                session.flush()
                return _to_template(record)
        except PersistenceError:
            raise
        except SQLAlchemyError as e:
            raise TemplateSaveError(template_id, str(e)) from e

    def rename_template(self, template_id: str, new_name: str) -> Template:
        """重命名模板."""
        return self.update_metadata(template_id, name=new_name)

    def delete_template(self, template_id: str) -> None:
        """删除模板.

        Raises:
            TemplateNotFoundError: 模板不存在或不属于当前用户
        """
        try:
            with self._db.session_scope() as session:
                session.delete(self._get_record(session, template_id))
        except PersistenceError:
            raise
        except SQLAlchemyError as e:
            raise TemplateSaveError(template_id, str(e)) from e
        logger.info(f"模板已删除: {template_id}")

    def list_templates(self, include_public: bool = False) -> list[TemplateMetadata]:
        """获取模板列表（最新创建的在前）.

        Args:
            include_public: 是否包含其他用户公开的模板
        """
        condition = TemplateRecord.user_id == self._user_id
        if include_public:
            condition = or_(condition, TemplateRecord.is_public.is_(True))
        stmt = select(TemplateRecord).where(condition).order_by(TemplateRecord.created_at.desc())
        try:
            with self._db.session_scope() as session:
                return [_to_metadata(record) for record in session.scalars(stmt)]
        except SQLAlchemyError as e:
            raise PersistenceError(f"获取模板列表失败: {e}") from e

    def duplicate_template(self, template_id: str) -> Template:
        """复制模板（新 ID，名称加后缀，不公开）."""
        source = self.load_template(template_id)
        return self.create_template(
            f"{source.name}{COPY_SUFFIX}",
            description=source.description,
            design=source.design_data,
        )

    # ========================
    # 导入导出
    # ========================

    def export_template(self, template_id: str, export_path: str) -> Path:
        """导出模板到文件.

        Returns:
            导出的文件路径
        """
        template = self.load_template(template_id)
        path = Path(export_path)
        payload = {
            "name": template.name,
            "description": template.description,
            "design_data": template.design_data.to_dict(),
        }
        try:
            path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"导出模板失败: {e}") from e
        logger.info(f"模板已导出: {path}")
        return path

    def import_template(self, import_path: str) -> Template:
        """从文件导入模板（生成新 ID）.

        Raises:
            PersistenceError: 文件无法读取、不是模板对象或设计数据无效
        """
        try:
            payload = json.loads(Path(import_path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise PersistenceError(f"导入模板失败: {e}") from e

        if not isinstance(payload, dict):
            raise PersistenceError(f"导入模板失败: 文件内容不是模板对象 ({import_path})")
        try:
            design = DesignDocument.from_data(payload.get("design_data"))
        except ValidationError as e:
            logger.error(f"导入的设计数据无效: {import_path}, 错误: {e}")
            raise PersistenceError(f"导入模板失败: 设计数据无效 ({e.error_count()} 处错误)") from e

        name = payload.get("name")
        if not isinstance(name, str) or not name:
            name = Path(import_path).name.removesuffix(TEMPLATE_EXTENSION)
        description = payload.get("description")
        return self.create_template(
            name,
            description=description if isinstance(description, str) else "",
            design=design,
        )


# ===================
# 默认设计
# ===================


def create_certificate_design() -> DesignDocument:
    """创建默认的结业证书设计（A4 横向）."""
    properties = TemplateProperties(
        orientation=Orientation.LANDSCAPE,
        background=Background(value="#fdfbf5"),
    )
    properties.margins.top = properties.margins.bottom = 10
    properties.margins.left = properties.margins.right = 10
    properties.padding.top = properties.padding.bottom = 5
    properties.padding.left = properties.padding.right = 5

    elements = [
        Element.create(
            ElementType.SHAPE,
            x=0,
            y=0,
            style={"width": "1000px", "height": "8px", "background-color": "#c9a227"},
        ),
        Element.create(
            ElementType.PLACEHOLDER,
            "{{certificate.title}}",
            x=30,
            y=12,
            style={"width": "400px", "height": "48px", "font-size": "36px"},
        ),
        Element.create(ElementType.TEXT, "This certificate is presented to", x=36, y=32),
        Element.create(
            ElementType.PLACEHOLDER,
            "{{recipient.name}}",
            x=36,
            y=42,
            style={"width": "300px", "height": "44px", "font-size": "32px"},
        ),
        Element.create(ElementType.PLACEHOLDER, "{{certificate.course}}", x=36, y=58),
        Element.create(ElementType.PLACEHOLDER, "{{certificate.date}}", x=8, y=82),
        Element.create(ElementType.PLACEHOLDER, "{{issuer.name}}", x=70, y=82),
        Element.create(ElementType.PLACEHOLDER, "{{certificate.id}}", x=70, y=90),
    ]
    return DesignDocument(elements=elements, properties=properties)
