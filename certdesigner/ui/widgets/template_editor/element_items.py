"""元素图形项组件.

将设计画布中的元素映射为 QGraphicsItem。图形项只负责绘制和把鼠标按下
翻译为控制器的指针事件，移动和抬起由画布视图统一投递到指针事件分发器。

Classes:
    - ElementGraphicsItem: 元素图形项基类
    - TextElementItem: 文字元素
    - PlaceholderElementItem: 占位符元素
    - ImageElementItem: 图片元素
    - ShapeElementItem: 形状元素
"""

from __future__ import annotations

from typing import Optional

import httpx
from PyQt6.QtCore import QObject, QPointF, QRectF, Qt, QTimer, QUrl, pyqtSignal
from PyQt6.QtGui import (
    QBrush,
    QColor,
    QCursor,
    QFont,
    QPainter,
    QPainterPath,
    QPen,
    QPixmap,
)
from PyQt6.QtWidgets import (
    QGraphicsItem,
    QGraphicsSceneHoverEvent,
    QGraphicsSceneMouseEvent,
    QStyleOptionGraphicsItem,
    QWidget,
)

from certdesigner.core.design_surface import DesignSurface
from certdesigner.core.element_controller import (
    ElementController,
    ImageElementController,
    PointerEvent,
    PointerTarget,
)
from certdesigner.models.template_config import Element, ElementType, parse_px
from certdesigner.utils.constants import DEFAULT_PLACEHOLDER_TOKEN
from certdesigner.utils.logger import setup_logger

logger = setup_logger(__name__)


# ===================
# 常量定义
# ===================

# 控制点大小
HANDLE_SIZE = 10

# 删除按钮大小
CONTROL_SIZE = 14

# 拖拽边框宽度（文字元素内缩该距离以内为内容区）
GRIP_MARGIN = 6

# 选中框样式
SELECTION_COLOR = QColor(24, 144, 255)
SELECTION_WIDTH = 1.5

# 占位符样式
PLACEHOLDER_FILL = QColor(24, 144, 255, 28)
PLACEHOLDER_BORDER = QColor(24, 144, 255, 160)

# 删除按钮样式
DELETE_FILL = QColor(255, 77, 79)

# 图片上传提示
UPLOAD_HINT = "点击上传图片"
UPLOAD_BUTTON_SIZE = (88, 28)

# 远程图片下载超时（秒）
PIXMAP_TIMEOUT = 10


def load_pixmap(reference: str) -> Optional[QPixmap]:
    """加载图片引用（本地路径、file:// 或 http(s) 地址）.

    Returns:
        QPixmap，加载失败返回 None
    """
    if not reference:
        return None

    url = QUrl(reference)
    pixmap = QPixmap()
    if url.scheme() in ("http", "https"):
        try:
            response = httpx.get(reference, timeout=PIXMAP_TIMEOUT, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"图片下载失败: {reference}, 错误: {e}")
            return None
        pixmap.loadFromData(response.content)
    elif url.scheme() == "file":
        pixmap.load(url.toLocalFile())
    else:
        pixmap.load(reference)

    return None if pixmap.isNull() else pixmap


def style_color(value: Optional[str], default: QColor) -> QColor:
    """解析样式颜色."""
    if value:
        color = QColor(value.strip())
        if color.isValid():
            return color
    return QColor(default)


def style_font(style: dict[str, str]) -> QFont:
    """根据样式创建字体（font-size 以像素计）."""
    font = QFont()
    family = style.get("font-family")
    if family:
        font.setFamily(family.split(",")[0].strip().strip("'\""))
    font.setPixelSize(max(1, int(parse_px(style.get("font-size")) or 16)))
    font.setBold(style.get("font-weight", "") in ("bold", "700", "800", "900"))
    font.setItalic(style.get("font-style") == "italic")
    return font


# ===================
# 信号发射器
# ===================


class ElementSignals(QObject):
    """元素信号发射器.

    QGraphicsItem 不继承 QObject，使用组合模式。
    """

    # 鼠标在元素上按下（手势开始前）
    pressed = pyqtSignal(str)  # element_id
    # 请求删除元素
    delete_requested = pyqtSignal(str)  # element_id
    # 请求替换图片
    replace_image_requested = pyqtSignal(str)  # element_id


# ===================
# 元素图形项基类
# ===================


class ElementGraphicsItem(QGraphicsItem):
    """元素图形项基类.

    几何信息和内容每次都从设计画布读取，图形项不保存元素数据副本。

    Attributes:
        signals: 信号发射器
    """

    def __init__(
        self,
        surface: DesignSurface,
        element_id: str,
        parent: Optional[QGraphicsItem] = None,
    ) -> None:
        """初始化元素图形项.

        Args:
            surface: 设计画布
            element_id: 元素ID
            parent: 父图形项
        """
        super().__init__(parent)

        self._surface = surface
        self._element_id = element_id
        self._width = 0.0
        self._height = 0.0
        self.signals = ElementSignals()

        self.setAcceptHoverEvents(True)
        self.setAcceptedMouseButtons(Qt.MouseButton.LeftButton)
        self.sync_from_surface()

    # ========================
    # 属性
    # ========================

    @property
    def element_id(self) -> str:
        return self._element_id

    @property
    def element(self) -> Element:
        """当前元素数据."""
        return self._surface.get_element(self._element_id)

    @property
    def controller(self) -> ElementController:
        """元素控制器."""
        return self._surface.controller_for(self._element_id)

    @property
    def is_selected(self) -> bool:
        return self._surface.selected_id == self._element_id

    @property
    def size(self) -> tuple[float, float]:
        return (self._width, self._height)

    def sync_from_surface(self) -> None:
        """从设计画布同步位置和尺寸."""
        geometry = self._surface.element_geometry(self._element_id)
        if (geometry.width, geometry.height) != (self._width, self._height):
            self.prepareGeometryChange()
            self._width = geometry.width
            self._height = geometry.height
        self.setPos(geometry.x, geometry.y)
        self.update()

    # ========================
    # 命中区域
    # ========================

    def delete_rect(self) -> QRectF:
        """删除按钮区域（右上角）."""
        return QRectF(self._width - CONTROL_SIZE - 2, 2, CONTROL_SIZE, CONTROL_SIZE)

    def content_rect(self) -> QRectF:
        """内容区域."""
        return QRectF(0, 0, self._width, self._height)

    def pointer_target(self, pos: QPointF) -> PointerTarget:
        """判断本地坐标处的指针目标."""
        if self.is_selected and self.delete_rect().contains(pos):
            return PointerTarget.CONTROL
        if self.content_rect().contains(pos):
            return PointerTarget.CONTENT
        return PointerTarget.SURFACE

    # ========================
    # QGraphicsItem 接口
    # ========================

    def boundingRect(self) -> QRectF:
        return QRectF(-1, -1, self._width + 2, self._height + 2)

    def shape(self) -> QPainterPath:
        path = QPainterPath()
        path.addRect(QRectF(0, 0, self._width, self._height))
        return path

    def paint(
        self,
        painter: QPainter,
        option: QStyleOptionGraphicsItem,
        widget: Optional[QWidget] = None,
    ) -> None:
        """绘制元素内容和选中状态."""
        painter.save()
        self.paint_content(painter, self.element)
        painter.restore()

        if self.is_selected:
            self._paint_selection(painter)

    def paint_content(self, painter: QPainter, element: Element) -> None:
        """绘制元素内容（子类实现）."""

    def _paint_selection(self, painter: QPainter) -> None:
        painter.save()
        pen = QPen(SELECTION_COLOR, SELECTION_WIDTH)
        pen.setStyle(Qt.PenStyle.DashLine)
        painter.setPen(pen)
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.drawRect(QRectF(0, 0, self._width, self._height))

        # 删除按钮
        rect = self.delete_rect()
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(QBrush(DELETE_FILL))
        painter.drawEllipse(rect)
        painter.setPen(QPen(QColor(255, 255, 255), 1.5))
        inset = rect.adjusted(4, 4, -4, -4)
        painter.drawLine(inset.topLeft(), inset.bottomRight())
        painter.drawLine(inset.topRight(), inset.bottomLeft())
        painter.restore()

    # ========================
    # 鼠标事件
    # ========================

    def hoverMoveEvent(self, event: QGraphicsSceneHoverEvent) -> None:
        target = self.pointer_target(event.pos())
        cursors = {
            PointerTarget.CONTROL: Qt.CursorShape.PointingHandCursor,
            PointerTarget.RESIZE_HANDLE: Qt.CursorShape.SizeFDiagCursor,
        }
        self.setCursor(QCursor(cursors.get(target, Qt.CursorShape.SizeAllCursor)))
        super().hoverMoveEvent(event)

    def mousePressEvent(self, event: QGraphicsSceneMouseEvent) -> None:
        """鼠标按下：子控件自行处理，其余交给控制器."""
        if event.button() != Qt.MouseButton.LeftButton:
            super().mousePressEvent(event)
            return

        target = self.pointer_target(event.pos())
        self.signals.pressed.emit(self._element_id)

        if target == PointerTarget.CONTROL:
            self.on_control_pressed(event.pos())
        else:
            scene_pos = event.scenePos()
            self.controller.pointer_down(PointerEvent(scene_pos.x(), scene_pos.y(), target))
        event.accept()

    def mouseMoveEvent(self, event: QGraphicsSceneMouseEvent) -> None:
        # 移动由画布视图投递到指针事件分发器
        event.accept()

    def mouseReleaseEvent(self, event: QGraphicsSceneMouseEvent) -> None:
        event.accept()

    def on_control_pressed(self, pos: QPointF) -> None:
        """子控件被按下."""
        if self.delete_rect().contains(pos):
            # 延迟到事件处理结束后，避免在自身事件中被移出场景
            element_id = self._element_id
            QTimer.singleShot(0, lambda: self.signals.delete_requested.emit(element_id))


# ===================
# 文字元素
# ===================


class TextElementItem(ElementGraphicsItem):
    """文字元素图形项."""

    # 编辑中隐藏文字（由编辑框显示）
    editing_hidden = False

    def content_rect(self) -> QRectF:
        """文字区域（四周保留拖拽边框）."""
        return QRectF(0, 0, self._width, self._height).adjusted(
            GRIP_MARGIN, GRIP_MARGIN, -GRIP_MARGIN, -GRIP_MARGIN
        )

    def display_text(self, element: Element) -> str:
        return element.content

    def paint_content(self, painter: QPainter, element: Element) -> None:
        if self.editing_hidden:
            return
        style = element.style
        painter.setFont(style_font(style))
        painter.setPen(QPen(style_color(style.get("color"), QColor(0, 0, 0))))

        align = {
            "center": Qt.AlignmentFlag.AlignHCenter,
            "right": Qt.AlignmentFlag.AlignRight,
        }.get(style.get("text-align", ""), Qt.AlignmentFlag.AlignLeft)
        painter.drawText(
            QRectF(0, 0, self._width, self._height),
            align | Qt.AlignmentFlag.AlignVCenter | Qt.TextFlag.TextWordWrap,
            self.display_text(element),
        )


class PlaceholderElementItem(TextElementItem):
    """占位符元素图形项（浅色背景和虚线边框标识）."""

    def display_text(self, element: Element) -> str:
        return element.content or DEFAULT_PLACEHOLDER_TOKEN

    def paint_content(self, painter: QPainter, element: Element) -> None:
        pen = QPen(PLACEHOLDER_BORDER, 1)
        pen.setStyle(Qt.PenStyle.DotLine)
        painter.setPen(pen)
        painter.setBrush(QBrush(PLACEHOLDER_FILL))
        painter.drawRoundedRect(QRectF(0, 0, self._width, self._height), 3, 3)
        super().paint_content(painter, element)


# ===================
# 图片元素
# ===================


class ImageElementItem(ElementGraphicsItem):
    """图片元素图形项.

    无内容时显示上传按钮；右下角为缩放控制点；加载失败时通知控制器清空内容。
    """

    _pixmap: Optional[QPixmap] = None
    _loaded_ref: Optional[str] = None

    @property
    def has_image(self) -> bool:
        return self._pixmap is not None

    def sync_from_surface(self) -> None:
        super().sync_from_surface()
        content = self.element.content
        if content != self._loaded_ref:
            self._loaded_ref = content
            self._pixmap = load_pixmap(content)
            if content and self._pixmap is None:
                # 当前处于画布变更通知中，延迟上报
                QTimer.singleShot(0, lambda: self._report_load_error(content))
            self.update()

    def _report_load_error(self, content: str) -> None:
        if self._element_id not in self._surface:
            return
        if self._surface.element_content(self._element_id) != content:
            return
        controller = self.controller
        if isinstance(controller, ImageElementController):
            controller.handle_load_error()

    def resize_handle_rect(self) -> QRectF:
        return QRectF(self._width - HANDLE_SIZE, self._height - HANDLE_SIZE, HANDLE_SIZE, HANDLE_SIZE)

    def upload_button_rect(self) -> QRectF:
        bw, bh = UPLOAD_BUTTON_SIZE
        return QRectF((self._width - bw) / 2, (self._height - bh) / 2, bw, bh)

    def pointer_target(self, pos: QPointF) -> PointerTarget:
        if self.resize_handle_rect().contains(pos):
            return PointerTarget.RESIZE_HANDLE
        if not self._loaded_ref and self.upload_button_rect().contains(pos):
            return PointerTarget.CONTROL
        return super().pointer_target(pos)

    def on_control_pressed(self, pos: QPointF) -> None:
        if not self._loaded_ref and self.upload_button_rect().contains(pos):
            element_id = self._element_id
            QTimer.singleShot(0, lambda: self.signals.replace_image_requested.emit(element_id))
            return
        super().on_control_pressed(pos)

    def mouseDoubleClickEvent(self, event: QGraphicsSceneMouseEvent) -> None:
        """双击替换图片."""
        self.signals.replace_image_requested.emit(self._element_id)
        event.accept()

    def paint_content(self, painter: QPainter, element: Element) -> None:
        rect = QRectF(0, 0, self._width, self._height)
        if self._pixmap is not None:
            scaled = self._pixmap.scaled(
                int(self._width),
                int(self._height),
                Qt.AspectRatioMode.KeepAspectRatioByExpanding,
                Qt.TransformationMode.SmoothTransformation,
            )
            sx = (scaled.width() - self._width) / 2
            sy = (scaled.height() - self._height) / 2
            painter.drawPixmap(rect, scaled, QRectF(sx, sy, self._width, self._height))
        else:
            pen = QPen(QColor(180, 180, 180), 1)
            pen.setStyle(Qt.PenStyle.DashLine)
            painter.setPen(pen)
            painter.setBrush(QBrush(QColor(248, 248, 248)))
            painter.drawRect(rect)
            button = self.upload_button_rect()
            painter.setBrush(QBrush(SELECTION_COLOR))
            painter.setPen(Qt.PenStyle.NoPen)
            painter.drawRoundedRect(button, 4, 4)
            painter.setPen(QPen(QColor(255, 255, 255)))
            painter.drawText(button, Qt.AlignmentFlag.AlignCenter, UPLOAD_HINT)

        # 缩放控制点
        painter.setPen(QPen(SELECTION_COLOR, 1))
        painter.setBrush(QBrush(QColor(255, 255, 255)))
        painter.drawRect(self.resize_handle_rect())


# ===================
# 形状元素
# ===================


class ShapeElementItem(ElementGraphicsItem):
    """形状元素图形项（矩形）."""

    def content_rect(self) -> QRectF:
        # 形状没有可编辑内容，整个区域都是拖拽表面
        return QRectF()

    def paint_content(self, painter: QPainter, element: Element) -> None:
        style = element.style
        border_width = parse_px(style.get("border-width")) or 0
        if border_width or style.get("border-color"):
            painter.setPen(QPen(style_color(style.get("border-color"), QColor(0, 0, 0)), max(1.0, border_width)))
        else:
            painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(QBrush(style_color(style.get("background-color"), QColor(229, 231, 235))))
        radius = parse_px(style.get("border-radius")) or 0
        painter.drawRoundedRect(QRectF(0, 0, self._width, self._height), radius, radius)


# ===================
# 工厂函数
# ===================

_ITEM_CLASSES: dict[ElementType, type[ElementGraphicsItem]] = {
    ElementType.TEXT: TextElementItem,
    ElementType.PLACEHOLDER: PlaceholderElementItem,
    ElementType.IMAGE: ImageElementItem,
    ElementType.SHAPE: ShapeElementItem,
}


def create_element_item(surface: DesignSurface, element_id: str) -> ElementGraphicsItem:
    """根据元素类型创建图形项.

    Args:
        surface: 设计画布
        element_id: 元素ID

    Returns:
        对应的图形项
    """
    element = surface.get_element(element_id)
    return _ITEM_CLASSES[element.type](surface, element_id)
