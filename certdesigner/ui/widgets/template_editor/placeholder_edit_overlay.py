"""内联编辑覆盖层组件.

在文字或占位符元素上显示单行编辑框，输入通过控制器过滤后实时写回元素。

Features:
    - 覆盖在元素上显示，预填控制器给出的编辑文本
    - 输入经控制器过滤（占位符只保留字母、数字、下划线和点）
    - 失去焦点、按 Enter 或 Esc 时结束编辑
"""

from __future__ import annotations

from typing import Optional

from PyQt6.QtCore import QRectF, Qt, pyqtSignal
from PyQt6.QtGui import QFocusEvent, QKeyEvent
from PyQt6.QtWidgets import QGraphicsProxyWidget, QLineEdit

from certdesigner.core.element_controller import EditableElementController
from certdesigner.ui.widgets.template_editor.element_items import (
    TextElementItem,
    style_font,
)
from certdesigner.utils.logger import setup_logger

logger = setup_logger(__name__)


class InlineLineEdit(QLineEdit):
    """单行编辑框，失去焦点或按 Esc 时发出结束信号."""

    focus_lost = pyqtSignal()

    def __init__(self, parent=None) -> None:
        super().__init__(parent)
        self.setFrame(False)
        self.setStyleSheet("""
            QLineEdit {
                background: rgba(255, 255, 255, 230);
                border: 1px solid #1890ff;
                padding: 0px 2px;
            }
        """)

    def focusOutEvent(self, event: QFocusEvent) -> None:
        super().focusOutEvent(event)
        self.focus_lost.emit()

    def keyPressEvent(self, event: QKeyEvent) -> None:
        if event.key() == Qt.Key.Key_Escape:
            self.focus_lost.emit()
            event.accept()
            return
        super().keyPressEvent(event)


class PlaceholderEditOverlay(QGraphicsProxyWidget):
    """内联编辑覆盖层.

    Signals:
        editing_finished: 编辑结束 (element_id)
    """

    editing_finished = pyqtSignal(str)  # element_id

    def __init__(self, parent=None) -> None:
        """初始化覆盖层."""
        super().__init__(parent)

        self._item: Optional[TextElementItem] = None
        self._controller: Optional[EditableElementController] = None

        self._editor = InlineLineEdit()
        self._editor.textEdited.connect(self._on_text_edited)
        self._editor.returnPressed.connect(self.finish_editing)
        self._editor.focus_lost.connect(self.finish_editing)
        self.setWidget(self._editor)

        self.hide()

    @property
    def editor(self) -> QLineEdit:
        """编辑框控件."""
        return self._editor

    @property
    def element_id(self) -> Optional[str]:
        """当前编辑的元素ID."""
        return self._item.element_id if self._item is not None else None

    @property
    def is_editing(self) -> bool:
        return self._item is not None

    def start_editing(self, item: TextElementItem, controller: EditableElementController) -> None:
        """开始编辑.

        Args:
            item: 元素图形项
            controller: 处于编辑状态的控制器
        """
        if self._item is not None:
            self.finish_editing()

        self._item = item
        self._controller = controller

        self._editor.setFont(style_font(item.element.style))
        self._editor.setText(controller.draft or "")
        self._editor.selectAll()

        width, height = item.size
        self.setGeometry(QRectF(0, 0, width, height))
        self.setPos(item.pos())

        item.editing_hidden = True
        item.update()

        self.show()
        self._editor.setFocus(Qt.FocusReason.OtherFocusReason)
        logger.debug(f"显示编辑框: {item.element_id}")

    def finish_editing(self) -> None:
        """提交编辑并隐藏编辑框."""
        if self._item is None:
            return

        item, controller = self._item, self._controller
        self._item = None
        self._controller = None

        if controller is not None:
            controller.commit()
        item.editing_hidden = False
        item.update()
        self.hide()
        self.editing_finished.emit(item.element_id)

    def _on_text_edited(self, text: str) -> None:
        """输入变化时经控制器过滤并写回."""
        if self._controller is None:
            return
        filtered = self._controller.input_text(text)
        if filtered is not None and filtered != text:
            cursor = max(0, self._editor.cursorPosition() - (len(text) - len(filtered)))
            self._editor.setText(filtered)
            self._editor.setCursorPosition(cursor)
