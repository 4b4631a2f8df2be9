"""撤销/重做系统单元测试.

Tests:
    - CommandStack: 命令栈管理
    - 元素命令: AddElementCommand, DeleteElementCommand, UpdateElementCommand
    - UndoRedoManager: 手势记录接口
"""

import pytest

from certdesigner.core.element_controller import PointerEvent
from certdesigner.models.template_config import ElementType, Orientation, Position
from certdesigner.ui.widgets.template_editor.undo_redo import (
    Command,
    CommandStack,
    DeleteElementCommand,
    UndoRedoManager,
)


class CounterCommand(Command):
    """计数命令."""

    def __init__(self, target: list) -> None:
        self._target = target

    def execute(self) -> None:
        self._target.append(1)

    def undo(self) -> None:
        self._target.pop()


@pytest.fixture
def manager(app, surface) -> UndoRedoManager:
    return UndoRedoManager(surface)


class TestCommandStack:
    """CommandStack 测试类."""

    def test_push_executes(self, app):
        """测试推入命令时执行."""
        values: list = []
        stack = CommandStack()
        stack.push(CounterCommand(values))
        assert values == [1]
        assert stack.can_undo
        assert not stack.can_redo

    def test_undo_redo(self, app):
        """测试撤销和重做."""
        values: list = []
        stack = CommandStack()
        stack.push(CounterCommand(values))
        assert stack.undo()
        assert values == []
        assert stack.redo_count == 1
        assert stack.redo()
        assert values == [1]
        assert stack.redo_count == 0

    def test_push_clears_redo(self, app):
        """测试新命令清空重做栈."""
        values: list = []
        stack = CommandStack()
        stack.push(CounterCommand(values))
        stack.undo()
        stack.push(CounterCommand(values))
        assert not stack.can_redo

    def test_max_depth(self, app):
        """测试栈深度限制."""
        values: list = []
        stack = CommandStack(max_depth=3)
        for _ in range(5):
            stack.push(CounterCommand(values))
        assert stack.undo_count == 3

    def test_empty_undo(self, app):
        """测试空栈撤销."""
        assert not CommandStack().undo()

    def test_signals(self, app, qtbot):
        """测试状态变化信号."""
        stack = CommandStack()
        with qtbot.waitSignal(stack.can_undo_changed) as blocker:
            stack.push(CounterCommand([]))
        assert blocker.args == [True]


class TestElementCommands:
    """元素命令测试类."""

    def test_add_and_undo(self, manager, surface):
        """测试添加元素后撤销."""
        element = manager.add_element(ElementType.TEXT, "New", 5, 5)
        assert surface.element_ids[-1] == element.id
        manager.undo()
        assert element.id not in surface
        manager.redo()
        assert surface.element_ids[-1] == element.id

    def test_delete_undo_restores_index(self, manager, surface):
        """测试删除后撤销恢复原层级位置."""
        ids = surface.element_ids
        manager.delete_element(ids[1])
        assert ids[1] not in surface
        manager.undo()
        assert surface.element_ids == ids

    def test_delete_description(self, app, surface):
        """测试命令描述."""
        command = DeleteElementCommand(surface, surface.element_ids[2])
        assert command.description == "删除占位符"

    def test_properties_undo(self, manager, surface):
        """测试页面属性修改可撤销."""
        before = surface.properties
        after = before.model_copy(update={"orientation": Orientation.LANDSCAPE})
        manager.set_properties(after)
        assert surface.properties.orientation == Orientation.LANDSCAPE
        manager.undo()
        assert surface.properties == before

    def test_same_properties_not_recorded(self, manager, surface):
        """测试属性未变化时不入栈."""
        manager.set_properties(surface.properties.model_copy(deep=True))
        assert not manager.can_undo


class TestGestureRecording:
    """手势变更记录测试类."""

    def test_drag_recorded_as_one_command(self, manager, surface):
        """测试一次拖拽记录为一个命令."""
        element_id = surface.element_ids[1]
        original = surface.get_element(element_id).position
        controller = surface.controller_for(element_id)

        manager.begin_change(element_id)
        controller.pointer_down(PointerEvent(150, 100))
        for x in (160, 180, 240):
            surface.bus.dispatch_move(PointerEvent(x, 140))
        surface.bus.dispatch_up(PointerEvent(240, 140))
        assert manager.end_change(element_id)

        assert manager.undo_count == 1
        assert manager.undo_description == "移动元素"
        manager.undo()
        assert surface.get_element(element_id).position == original

    def test_no_change_discarded(self, manager, surface):
        """测试没有变化时不记录."""
        element_id = surface.element_ids[0]
        manager.begin_change(element_id)
        assert not manager.end_change(element_id)
        assert not manager.can_undo
        assert not manager.has_pending(element_id)

    def test_end_without_begin(self, manager, surface):
        """测试未开始时结束无效果."""
        assert not manager.end_change(surface.element_ids[0])

    def test_earliest_snapshot_kept(self, manager, surface):
        """测试多次开始时保留最早的快照."""
        element_id = surface.element_ids[1]
        manager.begin_change(element_id)
        surface.update_element(element_id, content="A")
        manager.begin_change(element_id)
        surface.update_element(element_id, content="B")
        manager.end_change(element_id)
        manager.undo()
        assert surface.get_element(element_id).content == "Certificate"

    def test_redo_update(self, manager, surface):
        """测试重做元素变更."""
        element_id = surface.element_ids[0]
        manager.begin_change(element_id)
        surface.update_element(element_id, position=Position(x=40, y=40))
        manager.end_change(element_id)
        manager.undo()
        manager.redo()
        assert surface.get_element(element_id).position == Position(x=40, y=40)


class TestRewriteContent:
    """历史内容替换测试类."""

    def test_durable_url_restored_on_redo(self, manager, surface):
        """测试本地预览换成持久地址后，撤销再重做恢复持久地址."""
        element_id = surface.element_ids[3]
        manager.begin_change(element_id)
        surface.update_element(element_id, content="file:///local.png")
        manager.end_change(element_id)

        surface.update_element(element_id, content="https://cdn.example.com/a.png")
        manager.rewrite_content(element_id, "file:///local.png", "https://cdn.example.com/a.png")

        manager.undo()
        assert surface.get_element(element_id).content == ""
        manager.redo()
        assert surface.get_element(element_id).content == "https://cdn.example.com/a.png"

    def test_deleted_snapshot_rewritten(self, manager, surface):
        """测试删除命令中的快照也被替换."""
        element_id = surface.element_ids[3]
        surface.update_element(element_id, content="file:///local.png")
        manager.delete_element(element_id)
        manager.rewrite_content(element_id, "file:///local.png", "https://cdn.example.com/a.png")
        manager.undo()
        assert surface.get_element(element_id).content == "https://cdn.example.com/a.png"

    def test_other_elements_untouched(self, manager, surface):
        """测试只替换指定元素且内容匹配的快照."""
        element_id = surface.element_ids[1]
        manager.begin_change(element_id)
        surface.update_element(element_id, content="file:///local.png")
        manager.end_change(element_id)
        manager.rewrite_content(surface.element_ids[3], "file:///local.png", "https://cdn.example.com/a.png")
        manager.undo()
        manager.redo()
        assert surface.get_element(element_id).content == "file:///local.png"
