"""核心模块：占位符解析、页面布局、元素控制器与设计画布."""

from certdesigner.core.placeholder_resolver import (
    build_sample_data,
    resolve_placeholders,
    extract_placeholder_paths,
    missing_placeholders,
)
from certdesigner.core.page_layout import PageLayout, Rect, compute_layout
from certdesigner.core.element_controller import (
    PointerEvent,
    PointerTarget,
    PointerEventBus,
    ElementUpdate,
    ElementController,
    ImageElementController,
    PlaceholderElementController,
    TextElementController,
    ShapeElementController,
    create_controller,
)
from certdesigner.core.design_surface import DesignSurface, SurfaceChange

__all__ = [
    "build_sample_data",
    "resolve_placeholders",
    "extract_placeholder_paths",
    "missing_placeholders",
    "PageLayout",
    "Rect",
    "compute_layout",
    "PointerEvent",
    "PointerTarget",
    "PointerEventBus",
    "ElementUpdate",
    "ElementController",
    "ImageElementController",
    "PlaceholderElementController",
    "TextElementController",
    "ShapeElementController",
    "create_controller",
    "DesignSurface",
    "SurfaceChange",
]
