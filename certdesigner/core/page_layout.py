"""页面布局计算.

编辑画布与预览渲染共用的几何变换：页面尺寸换算为像素并乘以缩放比例，
横向通过交换宽高实现，外边距为页面内缩，内边距在外边距框内继续内缩。
元素坐标始终相对于最终（方向处理后）的内容区。
"""

from __future__ import annotations

from dataclasses import dataclass

from certdesigner.models.template_config import Position, TemplateProperties


@dataclass(frozen=True)
class Rect:
    """矩形区域（像素）."""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def inset(self, top: float, right: float, bottom: float, left: float) -> "Rect":
        """按四边内缩，宽高不小于 0."""
        return Rect(
            self.x + left,
            self.y + top,
            max(0.0, self.width - left - right),
            max(0.0, self.height - top - bottom),
        )

    def contains(self, x: float, y: float) -> bool:
        return self.x <= x <= self.right and self.y <= y <= self.bottom


@dataclass(frozen=True)
class PageLayout:
    """页面布局.

    Attributes:
        page: 页面区域
        margin_box: 扣除外边距后的区域
        content_box: 再扣除内边距后的内容区（元素坐标参照）
        scale: 缩放比例
    """

    page: Rect
    margin_box: Rect
    content_box: Rect
    scale: float

    def to_pixels(self, position: Position) -> tuple[float, float]:
        """百分比坐标换算为像素坐标."""
        box = self.content_box
        return (
            box.x + position.x / 100.0 * box.width,
            box.y + position.y / 100.0 * box.height,
        )

    def to_percent(self, x: float, y: float) -> Position:
        """像素坐标换算为百分比坐标."""
        box = self.content_box
        px = (x - box.x) / box.width * 100.0 if box.width else 0.0
        py = (y - box.y) / box.height * 100.0 if box.height else 0.0
        return Position(x=px, y=py)


def compute_layout(properties: TemplateProperties, scale: float = 1.0) -> PageLayout:
    """计算页面布局.

    Args:
        properties: 页面属性
        scale: 缩放比例

    Returns:
        PageLayout实例
    """
    width, height = properties.size.to_px()
    if properties.is_landscape:
        width, height = height, width

    page = Rect(0.0, 0.0, width * scale, height * scale)
    margins = [v * scale for v in properties.margins.to_px()]
    padding = [v * scale for v in properties.padding.to_px()]
    margin_box = page.inset(*margins)
    content_box = margin_box.inset(*padding)
    return PageLayout(page=page, margin_box=margin_box, content_box=content_box, scale=scale)
