"""数据模型模块."""

from certdesigner.models.template_config import (
    # 枚举
    ElementType,
    Unit,
    Orientation,
    BackgroundType,
    # 常量
    ELEMENT_TYPE_NAMES,
    # 模型
    Position,
    Element,
    PageSize,
    Background,
    BoxSpacing,
    TemplateProperties,
    DesignDocument,
    Template,
    # 辅助函数
    generate_element_id,
    to_pixels,
    parse_px,
    format_px,
)

__all__ = [
    "ElementType",
    "Unit",
    "Orientation",
    "BackgroundType",
    "ELEMENT_TYPE_NAMES",
    "Position",
    "Element",
    "PageSize",
    "Background",
    "BoxSpacing",
    "TemplateProperties",
    "DesignDocument",
    "Template",
    "generate_element_id",
    "to_pixels",
    "parse_px",
    "format_px",
]
