"""撤销/重做功能模块.

使用命令模式实现模板编辑器的撤销和重做，命令直接作用于设计画布。

Features:
    - 元素添加/删除撤销（删除撤销后恢复原层级位置）
    - 元素变更撤销（拖拽、缩放、内联编辑、替换图片按快照记录）
    - 页面属性变更撤销
    - 命令栈管理
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from PyQt6.QtCore import QObject, pyqtSignal

from certdesigner.core.design_surface import DesignSurface
from certdesigner.models.template_config import (
    ELEMENT_TYPE_NAMES,
    Element,
    TemplateProperties,
)
from certdesigner.utils.logger import setup_logger

logger = setup_logger(__name__)


# ===================
# 命令基类
# ===================


class Command(ABC):
    """命令基类.

    所有可撤销操作都应该实现这个接口。
    """

    @abstractmethod
    def execute(self) -> None:
        """执行命令."""

    @abstractmethod
    def undo(self) -> None:
        """撤销命令."""

    def redo(self) -> None:
        """重做命令（默认调用 execute）."""
        self.execute()

    @property
    def description(self) -> str:
        """命令描述（用于显示）."""
        return self.__class__.__name__

    def rewrite_content(self, element_id: str, old: str, new: str) -> None:
        """替换快照中元素的内容（默认无快照）."""


def _rewritten(element: Element, element_id: str, old: str, new: str) -> Element:
    if element.id == element_id and element.content == old:
        return element.model_copy(update={"content": new})
    return element


# ===================
# 命令栈管理器
# ===================


class CommandStack(QObject):
    """命令栈管理器.

    Signals:
        can_undo_changed: 可撤销状态改变
        can_redo_changed: 可重做状态改变
        stack_changed: 栈状态改变
    """

    can_undo_changed = pyqtSignal(bool)
    can_redo_changed = pyqtSignal(bool)
    stack_changed = pyqtSignal()

    # 默认最大栈深度
    DEFAULT_MAX_DEPTH = 50

    def __init__(
        self,
        max_depth: int = DEFAULT_MAX_DEPTH,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._undo_stack: list[Command] = []
        self._redo_stack: list[Command] = []
        self._max_depth = max_depth
        self._is_executing = False

    @property
    def can_undo(self) -> bool:
        return len(self._undo_stack) > 0

    @property
    def can_redo(self) -> bool:
        return len(self._redo_stack) > 0

    @property
    def undo_count(self) -> int:
        return len(self._undo_stack)

    @property
    def redo_count(self) -> int:
        return len(self._redo_stack)

    @property
    def undo_description(self) -> str:
        return self._undo_stack[-1].description if self._undo_stack else ""

    @property
    def redo_description(self) -> str:
        return self._redo_stack[-1].description if self._redo_stack else ""

    def push(self, command: Command, execute: bool = True) -> None:
        """推入命令.

        Args:
            command: 命令对象
            execute: 是否立即执行（已生效的变更传 False）
        """
        if self._is_executing:
            return

        self._is_executing = True
        try:
            if execute:
                command.execute()
            self._undo_stack.append(command)
            self._redo_stack.clear()
            while len(self._undo_stack) > self._max_depth:
                self._undo_stack.pop(0)
            self._emit_state_changed()
            logger.debug(f"命令入栈: {command.description}")
        finally:
            self._is_executing = False

    def undo(self) -> bool:
        """撤销.

        Returns:
            是否成功撤销
        """
        if not self.can_undo or self._is_executing:
            return False

        self._is_executing = True
        try:
            command = self._undo_stack.pop()
            command.undo()
            self._redo_stack.append(command)
            self._emit_state_changed()
            logger.debug(f"撤销: {command.description}")
            return True
        finally:
            self._is_executing = False

    def redo(self) -> bool:
        """重做.

        Returns:
            是否成功重做
        """
        if not self.can_redo or self._is_executing:
            return False

        self._is_executing = True
        try:
            command = self._redo_stack.pop()
            command.redo()
            self._undo_stack.append(command)
            self._emit_state_changed()
            logger.debug(f"重做: {command.description}")
            return True
        finally:
            self._is_executing = False

    def clear(self) -> None:
        """清空所有命令栈."""
        self._undo_stack.clear()
        self._redo_stack.clear()
        self._emit_state_changed()

    def rewrite_content(self, element_id: str, old: str, new: str) -> None:
        """替换所有已记录命令中元素的内容."""
        for command in (*self._undo_stack, *self._redo_stack):
            command.rewrite_content(element_id, old, new)

    def _emit_state_changed(self) -> None:
        self.can_undo_changed.emit(self.can_undo)
        self.can_redo_changed.emit(self.can_redo)
        self.stack_changed.emit()


# ===================
# 元素命令
# ===================


class AddElementCommand(Command):
    """添加元素命令（添加到最上层）."""

    def __init__(self, surface: DesignSurface, element: Element) -> None:
        self._surface = surface
        self._element = element.model_copy(deep=True)

    def execute(self) -> None:
        self._surface.insert_element(len(self._surface), self._element)

    def undo(self) -> None:
        self._surface.delete_element(self._element.id)

    def rewrite_content(self, element_id: str, old: str, new: str) -> None:
        self._element = _rewritten(self._element, element_id, old, new)

    @property
    def description(self) -> str:
        return f"添加{ELEMENT_TYPE_NAMES[self._element.type]}"


class DeleteElementCommand(Command):
    """删除元素命令.

    通过元素控制器删除；撤销时在原位置重新插入，保持层级顺序。
    """

    def __init__(self, surface: DesignSurface, element_id: str) -> None:
        self._surface = surface
        self._index = surface.index_of(element_id)
        self._element = surface.get_element(element_id).model_copy(deep=True)

    def execute(self) -> None:
        self._surface.controller_for(self._element.id).delete()

    def undo(self) -> None:
        self._surface.insert_element(self._index, self._element)

    def rewrite_content(self, element_id: str, old: str, new: str) -> None:
        self._element = _rewritten(self._element, element_id, old, new)

    @property
    def description(self) -> str:
        return f"删除{ELEMENT_TYPE_NAMES[self._element.type]}"


class UpdateElementCommand(Command):
    """元素变更命令（前后快照）."""

    def __init__(self, surface: DesignSurface, before: Element, after: Element) -> None:
        self._surface = surface
        self._before = before.model_copy(deep=True)
        self._after = after.model_copy(deep=True)

    def execute(self) -> None:
        self._surface.replace_element(self._after)

    def undo(self) -> None:
        self._surface.replace_element(self._before)

    def rewrite_content(self, element_id: str, old: str, new: str) -> None:
        self._before = _rewritten(self._before, element_id, old, new)
        self._after = _rewritten(self._after, element_id, old, new)

    @property
    def description(self) -> str:
        if self._before.content != self._after.content:
            return "修改内容"
        if self._before.position != self._after.position:
            return "移动元素"
        return "修改样式"


class ModifyPropertiesCommand(Command):
    """页面属性变更命令."""

    def __init__(
        self,
        surface: DesignSurface,
        before: TemplateProperties,
        after: TemplateProperties,
    ) -> None:
        self._surface = surface
        self._before = before.model_copy(deep=True)
        self._after = after.model_copy(deep=True)

    def execute(self) -> None:
        self._surface.set_properties(self._after)

    def undo(self) -> None:
        self._surface.set_properties(self._before)

    @property
    def description(self) -> str:
        return "修改页面属性"


# ===================
# 撤销/重做管理器
# ===================


class UndoRedoManager(QObject):
    """撤销/重做管理器.

    在命令栈之上提供记录接口。手势类变更使用 ``begin_change`` / ``end_change``：
    开始时记录元素快照，结束时与当前状态比较，有变化才入栈。

    Example:
        >>> manager = UndoRedoManager(surface)
        >>> manager.add_element(ElementType.TEXT, "Hello")
        >>> manager.undo()
    """

    can_undo_changed = pyqtSignal(bool)
    can_redo_changed = pyqtSignal(bool)
    stack_changed = pyqtSignal()

    def __init__(
        self,
        surface: DesignSurface,
        max_depth: int = CommandStack.DEFAULT_MAX_DEPTH,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._surface = surface
        self._stack = CommandStack(max_depth, self)
        self._pending: dict[str, Element] = {}

        self._stack.can_undo_changed.connect(self.can_undo_changed.emit)
        self._stack.can_redo_changed.connect(self.can_redo_changed.emit)
        self._stack.stack_changed.connect(self.stack_changed.emit)

    @property
    def surface(self) -> DesignSurface:
        return self._surface

    @property
    def can_undo(self) -> bool:
        return self._stack.can_undo

    @property
    def can_redo(self) -> bool:
        return self._stack.can_redo

    @property
    def undo_description(self) -> str:
        return self._stack.undo_description

    @property
    def redo_description(self) -> str:
        return self._stack.redo_description

    @property
    def undo_count(self) -> int:
        return self._stack.undo_count

    def undo(self) -> bool:
        self._pending.clear()
        return self._stack.undo()

    def redo(self) -> bool:
        self._pending.clear()
        return self._stack.redo()

    def clear(self) -> None:
        self._pending.clear()
        self._stack.clear()

    def push(self, command: Command, execute: bool = True) -> None:
        self._stack.push(command, execute)

    # ========================
    # 记录接口
    # ========================

    def add_element(self, element_type, content: str = "", x: float = 0.0, y: float = 0.0, style=None) -> Element:
        """添加元素并记录."""
        element = Element.create(element_type, content, x, y, style)
        self.push(AddElementCommand(self._surface, element))
        return self._surface.get_element(element.id)

    def delete_element(self, element_id: str) -> None:
        """删除元素并记录."""
        self._pending.pop(element_id, None)
        self.push(DeleteElementCommand(self._surface, element_id))

    def set_properties(self, properties: TemplateProperties) -> None:
        """修改页面属性并记录."""
        before = self._surface.properties
        if before == properties:
            return
        self.push(ModifyPropertiesCommand(self._surface, before, properties))

    def begin_change(self, element_id: str) -> None:
        """记录变更前快照（已有快照时保留最早的）."""
        if element_id in self._surface and element_id not in self._pending:
            self._pending[element_id] = self._surface.get_element(element_id).model_copy(deep=True)

    def end_change(self, element_id: str) -> bool:
        """结束变更，有变化时入栈.

        Returns:
            是否记录了命令
        """
        before = self._pending.pop(element_id, None)
        if before is None or element_id not in self._surface:
            return False
        after = self._surface.get_element(element_id)
        if after == before:
            return False
        self.push(UpdateElementCommand(self._surface, before, after), execute=False)
        return True

    def has_pending(self, element_id: str) -> bool:
        return element_id in self._pending

    def rewrite_content(self, element_id: str, old: str, new: str) -> None:
        """图片上传完成后，把历史快照中的本地预览地址换成持久地址.

        撤销再重做时恢复的是持久地址，而不是临时的本地文件。
        """
        pending = self._pending.get(element_id)
        if pending is not None:
            self._pending[element_id] = _rewritten(pending, element_id, old, new)
        self._stack.rewrite_content(element_id, old, new)
