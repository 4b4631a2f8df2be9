"""证书模板数据模型.

提供模板设计文档的数据模型：画布元素（文字、图片、形状、占位符）、
页面属性（尺寸、方向、背景、外边距、内边距）以及模板聚合根。

Features:
    - 元素模型（类型创建后不可变更）
    - 页面属性与缺省字段自动补全
    - 设计文档 JSON 序列化/反序列化（稳定往返）
    - 单位换算

坐标约定：``Element.position`` 始终为相对于页面内容区（方向处理后）的百分比，
像素坐标只出现在编辑器交互边界。
"""

from __future__ import annotations

import json
import re
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from certdesigner.utils.constants import (
    DEFAULT_BACKGROUND_COLOR,
    DEFAULT_ELEMENT_SIZES,
    DEFAULT_PAGE_HEIGHT,
    DEFAULT_PAGE_UNIT,
    DEFAULT_PAGE_WIDTH,
    UNIT_TO_PX,
)


# ===================
# 枚举定义
# ===================


class ElementType(str, Enum):
    """元素类型枚举."""

    TEXT = "text"
    IMAGE = "image"
    SHAPE = "shape"
    PLACEHOLDER = "placeholder"


class Unit(str, Enum):
    """长度单位."""

    MM = "mm"
    IN = "in"
    PX = "px"


class Orientation(str, Enum):
    """页面方向."""

    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"


class BackgroundType(str, Enum):
    """背景类型."""

    COLOR = "color"
    IMAGE = "image"


# 元素类型中文名称
ELEMENT_TYPE_NAMES: dict[ElementType, str] = {
    ElementType.TEXT: "文字",
    ElementType.IMAGE: "图片",
    ElementType.SHAPE: "形状",
    ElementType.PLACEHOLDER: "占位符",
}

_PX_VALUE_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*(?:px)?\s*$")


# ===================
# 辅助函数
# ===================


def generate_element_id() -> str:
    """生成唯一的元素ID.

    Returns:
        32位十六进制UUID字符串
    """
    return uuid.uuid4().hex


def to_pixels(value: float, unit: Unit | str) -> float:
    """将长度换算为像素（96 DPI）.

    Args:
        value: 数值
        unit: 单位

    Returns:
        像素值
    """
    return value * UNIT_TO_PX[Unit(unit).value]


def parse_px(value: Optional[str]) -> Optional[float]:
    """解析样式中的像素值（"120px" 或 "120"）.

    Args:
        value: 样式字符串

    Returns:
        数值，无法解析返回 None
    """
    if value is None:
        return None
    match = _PX_VALUE_RE.match(str(value))
    if not match:
        return None
    return float(match.group(1))


def format_px(value: float) -> str:
    """格式化像素样式值."""
    if float(value).is_integer():
        return f"{int(value)}px"
    return f"{value:g}px"


# ===================
# 元素
# ===================


class Position(BaseModel):
    """元素位置（内容区百分比）."""

    x: float = Field(default=0.0, description="水平位置百分比")
    y: float = Field(default=0.0, description="垂直位置百分比")


class Element(BaseModel):
    """画布元素.

    Attributes:
        id: 元素唯一标识符，创建时分配，不复用
        type: 元素类型，创建后不可修改
        content: 内容（占位符为 ``{{path}}``，图片为 URL，其余为文本）
        position: 位置（内容区百分比）
        style: 样式覆盖，后写入的键覆盖先前的值

    Example:
        >>> element = Element.create(ElementType.PLACEHOLDER, "{{recipient.name}}")
        >>> element.type
        <ElementType.PLACEHOLDER: 'placeholder'>
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=generate_element_id, description="元素唯一ID")
    type: ElementType = Field(frozen=True, description="元素类型")
    content: str = Field(default="", description="元素内容")
    position: Position = Field(default_factory=Position, description="位置")
    style: dict[str, str] = Field(default_factory=dict, description="样式")

    @field_validator("style", mode="before")
    @classmethod
    def coerce_style(cls, v: Any) -> dict[str, str]:
        """样式值统一转换为字符串."""
        if v is None:
            return {}
        return {str(k): str(val) for k, val in dict(v).items()}

    @property
    def is_placeholder(self) -> bool:
        """是否为占位符元素."""
        return self.type == ElementType.PLACEHOLDER

    @property
    def size(self) -> tuple[float, float]:
        """元素尺寸（像素）.

        优先读取 style 中的 width/height，否则使用类型默认尺寸。
        """
        default_w, default_h = DEFAULT_ELEMENT_SIZES[self.type.value]
        width = parse_px(self.style.get("width"))
        height = parse_px(self.style.get("height"))
        return (
            width if width is not None else float(default_w),
            height if height is not None else float(default_h),
        )

    def merged_style(self, updates: Mapping[str, str]) -> dict[str, str]:
        """返回合并后的样式（不修改自身）."""
        style = dict(self.style)
        style.update({str(k): str(v) for k, v in updates.items()})
        return style

    @classmethod
    def create(
        cls,
        element_type: ElementType | str,
        content: str = "",
        x: float = 0.0,
        y: float = 0.0,
        style: Optional[Mapping[str, str]] = None,
    ) -> "Element":
        """创建元素.

        Args:
            element_type: 元素类型
            content: 内容
            x: 水平位置百分比
            y: 垂直位置百分比
            style: 样式

        Returns:
            Element实例
        """
        return cls(
            type=ElementType(element_type),
            content=content,
            position=Position(x=x, y=y),
            style=dict(style or {}),
        )


# ===================
# 页面属性
# ===================


class PageSize(BaseModel):
    """页面尺寸."""

    width: float = Field(default=DEFAULT_PAGE_WIDTH, gt=0, description="宽度")
    height: float = Field(default=DEFAULT_PAGE_HEIGHT, gt=0, description="高度")
    unit: Unit = Field(default=Unit(DEFAULT_PAGE_UNIT), description="单位")

    def to_px(self) -> tuple[float, float]:
        """换算为像素尺寸."""
        return (to_pixels(self.width, self.unit), to_pixels(self.height, self.unit))


class Background(BaseModel):
    """页面背景."""

    type: BackgroundType = Field(default=BackgroundType.COLOR, description="背景类型")
    value: str = Field(default=DEFAULT_BACKGROUND_COLOR, description="颜色值或图片地址")


class BoxSpacing(BaseModel):
    """四边间距（外边距或内边距），四边共用同一单位."""

    top: float = Field(default=0, ge=0)
    right: float = Field(default=0, ge=0)
    bottom: float = Field(default=0, ge=0)
    left: float = Field(default=0, ge=0)
    unit: Unit = Field(default=Unit(DEFAULT_PAGE_UNIT))

    def to_px(self) -> tuple[float, float, float, float]:
        """换算为像素 (top, right, bottom, left)."""
        return (
            to_pixels(self.top, self.unit),
            to_pixels(self.right, self.unit),
            to_pixels(self.bottom, self.unit),
            to_pixels(self.left, self.unit),
        )


class TemplateProperties(BaseModel):
    """模板页面属性.

    所有字段都有缺省值，缺失的子字段在加载时自动补全：
    210×297mm、纵向、白色背景、零外边距和内边距。
    """

    size: PageSize = Field(default_factory=PageSize)
    orientation: Orientation = Field(default=Orientation.PORTRAIT)
    background: Background = Field(default_factory=Background)
    margins: BoxSpacing = Field(default_factory=BoxSpacing)
    padding: BoxSpacing = Field(default_factory=BoxSpacing)

    @field_validator("size", "background", "margins", "padding", mode="before")
    @classmethod
    def fill_missing(cls, v: Any) -> Any:
        """显式的 null 按缺省处理."""
        return {} if v is None else v

    @property
    def is_landscape(self) -> bool:
        """是否横向."""
        return self.orientation == Orientation.LANDSCAPE


# ===================
# 设计文档
# ===================


class DesignDocument(BaseModel):
    """设计文档（每个模板持久化的 {elements, properties}）."""

    elements: list[Element] = Field(default_factory=list)
    properties: TemplateProperties = Field(default_factory=TemplateProperties)

    @field_validator("elements", mode="before")
    @classmethod
    def fill_elements(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("properties", mode="before")
    @classmethod
    def fill_properties(cls, v: Any) -> Any:
        return {} if v is None else v

    @model_validator(mode="after")
    def check_unique_ids(self) -> "DesignDocument":
        """模板内元素 ID 不能重复."""
        seen: set[str] = set()
        for element in self.elements:
            if element.id in seen:
                raise ValueError(f"元素 ID 重复: {element.id}")
            seen.add(element.id)
        return self

    def to_dict(self) -> dict[str, Any]:
        """转换为可 JSON 序列化的字典."""
        return self.model_dump(mode="json")

    def to_json(self, indent: Optional[int] = None) -> str:
        """序列化为JSON字符串.

        Args:
            indent: 缩进空格数

        Returns:
            JSON字符串
        """
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=indent)

    @classmethod
    def from_data(cls, data: Optional[Mapping[str, Any]]) -> "DesignDocument":
        """从字典加载设计文档，缺失字段自动补全.

        Args:
            data: 原始文档数据，可以为 None

        Returns:
            DesignDocument实例

        Raises:
            pydantic.ValidationError: 数据不是对象或字段无效
        """
        if data is None:
            return cls()
        return cls.model_validate(dict(data) if isinstance(data, Mapping) else data)

    @classmethod
    def from_json(cls, json_str: str) -> "DesignDocument":
        """从JSON字符串反序列化."""
        return cls.from_data(json.loads(json_str) if json_str else None)


# ===================
# 模板聚合根
# ===================


class Template(BaseModel):
    """证书模板.

    模板是加载和保存的单位，元素只作为 ``design_data`` 的一部分存在。

    Attributes:
        id: 模板唯一ID
        name: 模板名称
        description: 模板描述
        design_data: 设计文档
        is_public: 是否公开
        user_id: 所属用户
        created_at: 创建时间（由存储端分配）
        updated_at: 更新时间（由存储端分配）
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = Field(default="未命名模板", max_length=200)
    description: str = Field(default="", max_length=2000)
    design_data: DesignDocument = Field(default_factory=DesignDocument)
    is_public: bool = Field(default=False)
    user_id: Optional[str] = Field(default=None)
    created_at: Optional[datetime] = Field(default=None)
    updated_at: Optional[datetime] = Field(default=None)

    @field_validator("design_data", mode="before")
    @classmethod
    def fill_design_data(cls, v: Any) -> Any:
        return {} if v is None else v

    @property
    def element_count(self) -> int:
        """元素数量."""
        return len(self.design_data.elements)
