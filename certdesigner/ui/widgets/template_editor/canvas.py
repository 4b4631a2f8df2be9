"""模板画布组件.

设计画布的可视化视图。场景坐标即编辑器像素坐标（比例 1:1），页面左上角为原点。

Features:
    - 页面背景、外边距框和内边距框辅助线
    - 元素图形项与设计画布同步（层级 = 列表顺序）
    - 指针移动/抬起统一投递到指针事件分发器
    - 点击内容进入内联编辑
    - 缩放和平移
"""

from __future__ import annotations

from typing import Optional

from PyQt6.QtCore import QPointF, QRectF, Qt, pyqtSignal
from PyQt6.QtGui import (
    QBrush,
    QColor,
    QKeyEvent,
    QMouseEvent,
    QPainter,
    QPen,
    QPixmap,
    QWheelEvent,
)
from PyQt6.QtWidgets import QGraphicsScene, QGraphicsView, QWidget

from certdesigner.core.design_surface import DesignSurface, SurfaceChange
from certdesigner.core.element_controller import EditableElementController, PointerEvent
from certdesigner.core.page_layout import PageLayout, Rect
from certdesigner.models.template_config import BackgroundType
from certdesigner.ui.widgets.template_editor.element_items import (
    ElementGraphicsItem,
    TextElementItem,
    create_element_item,
    load_pixmap,
    style_color,
)
from certdesigner.ui.widgets.template_editor.placeholder_edit_overlay import (
    PlaceholderEditOverlay,
)
from certdesigner.utils.logger import setup_logger

logger = setup_logger(__name__)


# ===================
# 常量定义
# ===================

# 缩放限制
MIN_ZOOM = 0.1
MAX_ZOOM = 5.0
ZOOM_STEP = 0.1

# 场景超出页面的区域
CANVAS_MARGIN = 100

# 颜色
OUTSIDE_COLOR = QColor(245, 245, 245)
PAGE_BORDER_COLOR = QColor(200, 200, 200)
PAGE_SHADOW_COLOR = QColor(0, 0, 0, 30)
MARGIN_GUIDE_COLOR = QColor(255, 120, 117)
PADDING_GUIDE_COLOR = QColor(24, 144, 255)


def _qrect(rect: Rect) -> QRectF:
    return QRectF(rect.x, rect.y, rect.width, rect.height)


# ===================
# 画布场景
# ===================


class TemplateScene(QGraphicsScene):
    """模板编辑场景.

    绘制页面背景及外边距、内边距辅助线。
    """

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._layout: Optional[PageLayout] = None
        self._background_color = QColor(255, 255, 255)
        self._background_pixmap: Optional[QPixmap] = None
        self._background_ref: Optional[str] = None
        self._show_guides = True

    @property
    def page_rect(self) -> QRectF:
        """页面区域."""
        if self._layout is None:
            return QRectF()
        return _qrect(self._layout.page)

    @property
    def show_guides(self) -> bool:
        return self._show_guides

    def set_layout(self, layout: PageLayout, background_type: BackgroundType, background_value: str) -> None:
        """设置页面布局和背景."""
        self._layout = layout
        if background_type == BackgroundType.IMAGE:
            if background_value != self._background_ref:
                self._background_ref = background_value
                self._background_pixmap = load_pixmap(background_value)
            self._background_color = QColor(255, 255, 255)
        else:
            self._background_ref = None
            self._background_pixmap = None
            self._background_color = style_color(background_value, QColor(255, 255, 255))

        page = layout.page
        self.setSceneRect(
            -CANVAS_MARGIN,
            -CANVAS_MARGIN,
            page.width + CANVAS_MARGIN * 2,
            page.height + CANVAS_MARGIN * 2,
        )
        self.update()

    def set_show_guides(self, show: bool) -> None:
        """设置是否显示边距辅助线."""
        self._show_guides = show
        self.update()

    def drawBackground(self, painter: QPainter, rect: QRectF) -> None:
        """绘制背景."""
        painter.save()
        painter.fillRect(rect, OUTSIDE_COLOR)

        if self._layout is None:
            painter.restore()
            return

        page_rect = self.page_rect
        painter.fillRect(page_rect.translated(4, 4), PAGE_SHADOW_COLOR)
        painter.fillRect(page_rect, self._background_color)

        if self._background_pixmap is not None:
            scaled = self._background_pixmap.scaled(
                int(page_rect.width()),
                int(page_rect.height()),
                Qt.AspectRatioMode.KeepAspectRatioByExpanding,
                Qt.TransformationMode.SmoothTransformation,
            )
            sx = (scaled.width() - page_rect.width()) / 2
            sy = (scaled.height() - page_rect.height()) / 2
            painter.drawPixmap(page_rect, scaled, QRectF(sx, sy, page_rect.width(), page_rect.height()))

        if self._show_guides:
            self._draw_guide(painter, _qrect(self._layout.margin_box), MARGIN_GUIDE_COLOR)
            self._draw_guide(painter, _qrect(self._layout.content_box), PADDING_GUIDE_COLOR)

        painter.setPen(QPen(PAGE_BORDER_COLOR, 1))
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.drawRect(page_rect)
        painter.restore()

    def _draw_guide(self, painter: QPainter, rect: QRectF, color: QColor) -> None:
        pen = QPen(color, 0.8)
        pen.setStyle(Qt.PenStyle.DashLine)
        painter.setPen(pen)
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.drawRect(rect)


# ===================
# 画布视图
# ===================


class TemplateCanvas(QGraphicsView):
    """模板画布视图.

    Signals:
        element_selected: 元素被选中 (element_id)
        selection_cleared: 选中被清除
        gesture_started: 元素上按下鼠标 (element_id)
        gesture_finished: 鼠标抬起 (element_id)
        edit_started: 开始内联编辑 (element_id)
        edit_finished: 内联编辑结束 (element_id)
        delete_requested: 请求删除元素 (element_id)
        replace_image_requested: 请求替换图片 (element_id)
        zoom_changed: 缩放比例改变

    Example:
        >>> canvas = TemplateCanvas()
        >>> canvas.set_surface(DesignSurface(document))
    """

    element_selected = pyqtSignal(str)
    selection_cleared = pyqtSignal()
    gesture_started = pyqtSignal(str)
    gesture_finished = pyqtSignal(str)
    edit_started = pyqtSignal(str)
    edit_finished = pyqtSignal(str)
    delete_requested = pyqtSignal(str)
    replace_image_requested = pyqtSignal(str)
    zoom_changed = pyqtSignal(float)

    def __init__(self, surface: Optional[DesignSurface] = None, parent: Optional[QWidget] = None) -> None:
        """初始化画布视图.

        Args:
            surface: 设计画布
            parent: 父组件
        """
        super().__init__(parent)

        self._surface: Optional[DesignSurface] = None
        self._items: dict[str, ElementGraphicsItem] = {}

        # 交互状态
        self._is_panning = False
        self._pan_start_pos: Optional[QPointF] = None
        self._pressed_id: Optional[str] = None
        self._zoom_level = 1.0

        self._setup_ui()

        self._scene = TemplateScene(self)
        self.setScene(self._scene)

        self._edit_overlay = PlaceholderEditOverlay()
        self._scene.addItem(self._edit_overlay)
        self._edit_overlay.setZValue(10000)
        self._edit_overlay.editing_finished.connect(self.edit_finished.emit)

        self.set_surface(surface or DesignSurface())

    def _setup_ui(self) -> None:
        """设置UI属性."""
        self.setRenderHint(QPainter.RenderHint.Antialiasing)
        self.setRenderHint(QPainter.RenderHint.TextAntialiasing)
        self.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
        self.setViewportUpdateMode(QGraphicsView.ViewportUpdateMode.FullViewportUpdate)
        self.setTransformationAnchor(QGraphicsView.ViewportAnchor.AnchorUnderMouse)
        self.setResizeAnchor(QGraphicsView.ViewportAnchor.AnchorViewCenter)
        self.setMouseTracking(True)
        self.setBackgroundBrush(QBrush(OUTSIDE_COLOR))

    # ========================
    # 公共属性
    # ========================

    @property
    def surface(self) -> DesignSurface:
        """当前设计画布."""
        assert self._surface is not None
        return self._surface

    @property
    def template_scene(self) -> TemplateScene:
        return self._scene

    @property
    def edit_overlay(self) -> PlaceholderEditOverlay:
        return self._edit_overlay

    @property
    def zoom_level(self) -> float:
        return self._zoom_level

    def item_for(self, element_id: str) -> Optional[ElementGraphicsItem]:
        """获取元素图形项."""
        return self._items.get(element_id)

    @property
    def item_count(self) -> int:
        return len(self._items)

    # ========================
    # 画布同步
    # ========================

    def set_surface(self, surface: DesignSurface) -> None:
        """设置设计画布并重建所有图形项."""
        self._edit_overlay.finish_editing()
        if self._surface is not None:
            self._surface.remove_listener(self._on_surface_changed)
        self._surface = surface
        surface.add_listener(self._on_surface_changed)
        self._rebuild()

    def _rebuild(self) -> None:
        for item in self._items.values():
            self._scene.removeItem(item)
        self._items.clear()
        self._sync_page()
        for element_id in self.surface.element_ids:
            self._add_item(element_id)
        self._restack()

    def _sync_page(self) -> None:
        properties = self.surface.properties
        self._scene.set_layout(
            self.surface.layout,
            properties.background.type,
            properties.background.value,
        )

    def _add_item(self, element_id: str) -> ElementGraphicsItem:
        item = create_element_item(self.surface, element_id)
        item.signals.pressed.connect(self._on_item_pressed)
        item.signals.delete_requested.connect(self.delete_requested.emit)
        item.signals.replace_image_requested.connect(self.replace_image_requested.emit)
        self._scene.addItem(item)
        self._items[element_id] = item
        return item

    def _remove_item(self, element_id: str) -> None:
        if self._edit_overlay.element_id == element_id:
            self._edit_overlay.finish_editing()
        item = self._items.pop(element_id, None)
        if item is not None:
            self._scene.removeItem(item)

    def _restack(self) -> None:
        """按列表顺序设置层级."""
        for z, element_id in enumerate(self.surface.element_ids):
            item = self._items.get(element_id)
            if item is not None:
                item.setZValue(z)

    def _on_surface_changed(self, change: SurfaceChange, element_id: Optional[str]) -> None:
        if change == SurfaceChange.ADDED and element_id is not None:
            self._add_item(element_id)
            self._restack()
        elif change == SurfaceChange.REMOVED and element_id is not None:
            self._remove_item(element_id)
            self._restack()
        elif change == SurfaceChange.UPDATED and element_id is not None:
            item = self._items.get(element_id)
            if item is not None:
                item.sync_from_surface()
        elif change == SurfaceChange.PROPERTIES:
            self._sync_page()
            for item in self._items.values():
                item.sync_from_surface()
        elif change == SurfaceChange.RESET:
            self._rebuild()

    # ========================
    # 选择
    # ========================

    def select_element(self, element_id: Optional[str]) -> None:
        """选中元素（None 清除选中）."""
        self.surface.select(element_id)
        self._scene.update()
        if element_id is None:
            self.selection_cleared.emit()
        else:
            self.element_selected.emit(element_id)

    def _on_item_pressed(self, element_id: str) -> None:
        if self._edit_overlay.is_editing and self._edit_overlay.element_id != element_id:
            self._edit_overlay.finish_editing()
        self._pressed_id = element_id
        if self.surface.selected_id != element_id:
            self.select_element(element_id)
        self.gesture_started.emit(element_id)

    def _maybe_start_editing(self, element_id: str) -> None:
        """控制器进入编辑状态时显示编辑框."""
        if element_id not in self.surface or self._edit_overlay.is_editing:
            return
        controller = self.surface.controller_for(element_id)
        item = self._items.get(element_id)
        if (
            isinstance(controller, EditableElementController)
            and controller.is_editing
            and isinstance(item, TextElementItem)
        ):
            self._edit_overlay.start_editing(item, controller)
            self.edit_started.emit(element_id)

    def begin_edit(self, element_id: str) -> bool:
        """直接进入元素的内联编辑."""
        controller = self.surface.controller_for(element_id)
        if not isinstance(controller, EditableElementController):
            return False
        if not controller.begin_edit():
            return False
        self.select_element(element_id)
        self._maybe_start_editing(element_id)
        return True

    # ========================
    # 视图控制
    # ========================

    def set_zoom(self, level: float) -> None:
        """设置缩放级别 (0.1 - 5.0)."""
        level = max(MIN_ZOOM, min(MAX_ZOOM, level))
        if level != self._zoom_level:
            factor = level / self._zoom_level
            self.scale(factor, factor)
            self._zoom_level = level
            self.zoom_changed.emit(self._zoom_level)

    def zoom_in(self) -> None:
        self.set_zoom(self._zoom_level + ZOOM_STEP)

    def zoom_out(self) -> None:
        self.set_zoom(self._zoom_level - ZOOM_STEP)

    def fit_in_view(self) -> None:
        """适应视图大小."""
        self.fitInView(self._scene.page_rect, Qt.AspectRatioMode.KeepAspectRatio)
        self._zoom_level = self.transform().m11()
        self.zoom_changed.emit(self._zoom_level)

    # ========================
    # 事件处理
    # ========================

    def _scene_event(self, event: QMouseEvent) -> PointerEvent:
        pos = self.mapToScene(event.position().toPoint())
        return PointerEvent(pos.x(), pos.y())

    def wheelEvent(self, event: QWheelEvent) -> None:
        """Ctrl + 滚轮缩放."""
        if event.modifiers() == Qt.KeyboardModifier.ControlModifier:
            if event.angleDelta().y() > 0:
                self.zoom_in()
            else:
                self.zoom_out()
            event.accept()
            return
        super().wheelEvent(event)

    def mousePressEvent(self, event: QMouseEvent) -> None:
        """中键平移；点击空白处清除选中."""
        if event.button() == Qt.MouseButton.MiddleButton:
            self._is_panning = True
            self._pan_start_pos = event.position()
            self.setCursor(Qt.CursorShape.ClosedHandCursor)
            event.accept()
            return

        self._pressed_id = None
        super().mousePressEvent(event)

        if event.button() == Qt.MouseButton.LeftButton and self._pressed_id is None:
            if not self._edit_overlay.isUnderMouse():
                self._edit_overlay.finish_editing()
                if self.surface.selected_id is not None:
                    self.select_element(None)

    def mouseMoveEvent(self, event: QMouseEvent) -> None:
        if self._is_panning and self._pan_start_pos is not None:
            delta = event.position() - self._pan_start_pos
            self._pan_start_pos = event.position()
            self.horizontalScrollBar().setValue(int(self.horizontalScrollBar().value() - delta.x()))
            self.verticalScrollBar().setValue(int(self.verticalScrollBar().value() - delta.y()))
            event.accept()
            return

        bus = self.surface.bus
        if bus.has_active_gesture:
            bus.dispatch_move(self._scene_event(event))
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:
        if self._is_panning:
            self._is_panning = False
            self._pan_start_pos = None
            self.setCursor(Qt.CursorShape.ArrowCursor)
            event.accept()
            return

        bus = self.surface.bus
        if event.button() == Qt.MouseButton.LeftButton and bus.has_active_gesture:
            bus.dispatch_up(self._scene_event(event))
        super().mouseReleaseEvent(event)

        pressed_id, self._pressed_id = self._pressed_id, None
        if pressed_id is not None:
            self._maybe_start_editing(pressed_id)
            self.gesture_finished.emit(pressed_id)

    def keyPressEvent(self, event: QKeyEvent) -> None:
        """Delete 键删除选中元素."""
        if (
            event.key() in (Qt.Key.Key_Delete, Qt.Key.Key_Backspace)
            and not self._edit_overlay.is_editing
            and self.surface.selected_id is not None
        ):
            self.delete_requested.emit(self.surface.selected_id)
            event.accept()
            return
        super().keyPressEvent(event)
