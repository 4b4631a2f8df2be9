"""元素控制器单元测试.

Tests:
    - PointerEventBus: 订阅与释放
    - 拖拽: 偏移计算、每次移动上报一次、空闲时不上报
    - 图片缩放: 最小尺寸、样式合并
    - 内联编辑: 占位符过滤与包装
    - 图片替换: 本地预览与过期上传结果
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from certdesigner.core.element_controller import (
    Dragging,
    ElementUpdate,
    Idle,
    ImageElementController,
    PlaceholderElementController,
    PointerEvent,
    PointerEventBus,
    PointerTarget,
    Resizing,
    ShapeElementController,
    TextElementController,
    create_controller,
)
from certdesigner.core.page_layout import Rect
from certdesigner.models.template_config import ElementType


# ===================
# Fixtures
# ===================


class FakeSource:
    """简单的元素数据来源，应用上报的更新."""

    def __init__(self, x=10.0, y=10.0, width=200.0, height=200.0, content="", style=None):
        self.geometry = Rect(x, y, width, height)
        self.content = content
        self.style = dict(style or {})
        self.updates: list[ElementUpdate] = []
        self.deleted: list[str] = []

    def element_geometry(self, element_id):
        return self.geometry

    def element_content(self, element_id):
        return self.content

    def element_style(self, element_id):
        return dict(self.style)

    def on_update(self, element_id, update):
        self.updates.append(update)
        if update.content is not None:
            self.content = update.content
        if update.style is not None:
            self.style = dict(update.style)
        if update.position is not None:
            self.geometry = Rect(*update.position, self.geometry.width, self.geometry.height)

    def on_delete(self, element_id):
        self.deleted.append(element_id)


@pytest.fixture
def bus() -> PointerEventBus:
    return PointerEventBus()


@pytest.fixture
def source() -> FakeSource:
    return FakeSource()


def make(controller_class, source, bus, element_id="e1"):
    return controller_class(element_id, source, bus, source.on_update, source.on_delete)


# ===================
# PointerEventBus 测试
# ===================


class TestPointerEventBus:
    """PointerEventBus 测试类."""

    def test_subscribe_and_dispatch(self, bus):
        """测试订阅后收到事件."""
        moves, ups = [], []
        bus.subscribe(moves.append, ups.append)
        bus.dispatch_move(PointerEvent(1, 2))
        bus.dispatch_up(PointerEvent(3, 4))
        assert moves == [PointerEvent(1, 2)]
        assert ups == [PointerEvent(3, 4)]

    def test_release(self, bus):
        """测试释放后不再收到事件."""
        moves = []
        subscription = bus.subscribe(moves.append, lambda e: None)
        assert bus.has_active_gesture
        subscription.release()
        subscription.release()
        bus.dispatch_move(PointerEvent(1, 2))
        assert moves == []
        assert bus.subscription_count == 0
        assert not subscription.active

    def test_context_manager(self, bus):
        """测试 with 语句自动释放."""
        with bus.subscribe(lambda e: None, lambda e: None):
            assert bus.subscription_count == 1
        assert bus.subscription_count == 0


# ===================
# 拖拽测试
# ===================


class TestDragging:
    """拖拽手势测试类."""

    def test_drag_reports_pointer_minus_offset(self, source, bus):
        """测试元素 (10,10)，在 (12,12) 按下，移动到 (17,20) 上报 (15,18)."""
        controller = make(ShapeElementController, source, bus)
        assert controller.pointer_down(PointerEvent(12, 12))
        assert isinstance(controller.state, Dragging)

        bus.dispatch_move(PointerEvent(17, 20))

        assert len(source.updates) == 1
        assert source.updates[0].position == (15, 18)

    def test_one_report_per_move(self, source, bus):
        """测试每次移动恰好上报一次."""
        controller = make(ShapeElementController, source, bus)
        controller.pointer_down(PointerEvent(12, 12))
        for i in range(5):
            bus.dispatch_move(PointerEvent(12 + i, 12 + i))
        assert len(source.updates) == 5
        assert source.updates[-1].position == (14, 14)

    def test_pointer_up_ends_gesture(self, source, bus):
        """测试抬起后回到空闲并释放订阅."""
        controller = make(ShapeElementController, source, bus)
        controller.pointer_down(PointerEvent(12, 12))
        bus.dispatch_up(PointerEvent(12, 12))
        assert isinstance(controller.state, Idle)
        assert bus.subscription_count == 0

    def test_no_reports_while_idle(self, source, bus):
        """测试空闲时移动和抬起不产生任何上报."""
        make(ShapeElementController, source, bus)
        bus.dispatch_move(PointerEvent(50, 50))
        bus.dispatch_up(PointerEvent(50, 50))
        assert source.updates == []

    def test_no_reports_after_release(self, source, bus):
        """测试手势结束后的移动不再上报."""
        controller = make(ShapeElementController, source, bus)
        controller.pointer_down(PointerEvent(12, 12))
        bus.dispatch_up(PointerEvent(12, 12))
        bus.dispatch_move(PointerEvent(40, 40))
        assert source.updates == []

    def test_control_target_does_not_drag(self, source, bus):
        """测试在子控件上按下不开始拖拽."""
        controller = make(ImageElementController, source, bus)
        assert not controller.pointer_down(PointerEvent(12, 12, PointerTarget.CONTROL))
        assert controller.is_idle
        assert bus.subscription_count == 0

    def test_geometry_read_at_gesture_start(self, source, bus):
        """测试每次手势开始时重新读取元素位置."""
        controller = make(ShapeElementController, source, bus)
        controller.pointer_down(PointerEvent(12, 12))
        bus.dispatch_move(PointerEvent(22, 22))
        bus.dispatch_up(PointerEvent(22, 22))

        # 元素已移动到 (20,20)
        controller.pointer_down(PointerEvent(25, 25))
        bus.dispatch_move(PointerEvent(30, 30))
        assert source.updates[-1].position == (25, 25)

    def test_cancel_releases_subscription(self, source, bus):
        """测试取消手势释放订阅."""
        controller = make(ShapeElementController, source, bus)
        controller.pointer_down(PointerEvent(12, 12))
        controller.cancel()
        assert controller.is_idle
        assert bus.subscription_count == 0


# ===================
# 图片缩放测试
# ===================


class TestImageResize:
    """图片缩放测试类."""

    def test_resize_from_handle(self, bus):
        """测试从控制点缩放，宽高为指针减去元素原点."""
        source = FakeSource(x=100, y=100, style={"border-radius": "4px"})
        controller = make(ImageElementController, source, bus)
        assert controller.pointer_down(PointerEvent(300, 300, PointerTarget.RESIZE_HANDLE))
        assert isinstance(controller.state, Resizing)

        bus.dispatch_move(PointerEvent(250, 180))

        assert source.updates[-1].style == {
            "border-radius": "4px",
            "width": "150px",
            "height": "80px",
        }

    def test_resize_clamped_to_minimum(self, bus):
        """测试宽高不小于 50."""
        source = FakeSource(x=100, y=100)
        controller = make(ImageElementController, source, bus)
        controller.pointer_down(PointerEvent(300, 300, PointerTarget.RESIZE_HANDLE))
        bus.dispatch_move(PointerEvent(110, 90))
        assert source.updates[-1].style["width"] == "50px"
        assert source.updates[-1].style["height"] == "50px"

    def test_resize_does_not_move(self, bus):
        """测试缩放不改变位置."""
        source = FakeSource(x=100, y=100)
        controller = make(ImageElementController, source, bus)
        controller.pointer_down(PointerEvent(300, 300, PointerTarget.RESIZE_HANDLE))
        bus.dispatch_move(PointerEvent(400, 400))
        bus.dispatch_up(PointerEvent(400, 400))
        assert all(update.position is None for update in source.updates)
        assert controller.is_idle

    def test_shape_ignores_resize_handle(self, source, bus):
        """测试形状不支持缩放."""
        controller = make(ShapeElementController, source, bus)
        assert not controller.pointer_down(PointerEvent(12, 12, PointerTarget.RESIZE_HANDLE))


# ===================
# 内联编辑测试
# ===================


class TestInlineEditing:
    """内联编辑测试类."""

    def test_content_click_enters_editing(self, bus):
        """测试点击内容且未移动时进入编辑."""
        source = FakeSource(content="{{recipient.name}}")
        controller = make(PlaceholderElementController, source, bus)
        controller.pointer_down(PointerEvent(12, 12, PointerTarget.CONTENT))
        bus.dispatch_up(PointerEvent(12, 12))
        assert controller.is_editing
        assert controller.draft == "recipient.name"
        assert bus.subscription_count == 0

    def test_drag_from_content_does_not_edit(self, bus):
        """测试从内容区拖拽后不进入编辑."""
        source = FakeSource(content="{{recipient.name}}")
        controller = make(PlaceholderElementController, source, bus)
        controller.pointer_down(PointerEvent(12, 12, PointerTarget.CONTENT))
        bus.dispatch_move(PointerEvent(20, 20))
        bus.dispatch_up(PointerEvent(20, 20))
        assert controller.is_idle

    def test_surface_click_does_not_edit(self, bus):
        """测试点击元素表面不进入编辑."""
        source = FakeSource(content="Hello")
        controller = make(TextElementController, source, bus)
        controller.pointer_down(PointerEvent(12, 12, PointerTarget.SURFACE))
        bus.dispatch_up(PointerEvent(12, 12))
        assert controller.is_idle

    def test_placeholder_input_filtered_and_wrapped(self, bus):
        """测试占位符输入过滤非法字符并包装."""
        source = FakeSource(content="{{recipient.name}}")
        controller = make(PlaceholderElementController, source, bus)
        controller.begin_edit()

        draft = controller.input_text("certificate.title!")

        assert draft == "certificate.title"
        assert source.content == "{{certificate.title}}"

    def test_text_input_unfiltered(self, bus):
        """测试文字元素输入不过滤."""
        source = FakeSource(content="Hello")
        controller = make(TextElementController, source, bus)
        controller.begin_edit()
        assert controller.draft == "Hello"
        controller.input_text("Hello, 世界!")
        assert source.content == "Hello, 世界!"

    def test_commit_returns_to_idle(self, bus):
        """测试提交后回到显示模式."""
        source = FakeSource(content="{{a}}")
        controller = make(PlaceholderElementController, source, bus)
        controller.begin_edit()
        controller.commit()
        assert controller.is_idle
        assert controller.input_text("b") is None

    def test_no_drag_while_editing(self, bus):
        """测试编辑中不开始拖拽."""
        source = FakeSource(content="{{a}}")
        controller = make(PlaceholderElementController, source, bus)
        controller.begin_edit()
        assert not controller.pointer_down(PointerEvent(12, 12))
        assert controller.is_editing


# ===================
# 图片替换测试
# ===================


class TestImageReplacement:
    """图片替换测试类."""

    def test_replace_image_reports_local_preview(self, bus, png_file):
        """测试选择图片后立即上报本地预览地址."""
        source = FakeSource()
        storage = MagicMock()
        storage.local_preview.return_value = "file:///tmp/logo.png"
        controller = make(ImageElementController, source, bus)

        local_ref = controller.replace_image(str(png_file), storage)

        assert local_ref == "file:///tmp/logo.png"
        assert source.content == "file:///tmp/logo.png"

    @pytest.mark.asyncio
    async def test_complete_upload_applies_durable_url(self, bus):
        """测试上传完成后替换为持久地址."""
        source = FakeSource(content="file:///tmp/logo.png")
        storage = MagicMock()
        storage.upload = AsyncMock(return_value="https://cdn.example.com/u/logo.png")
        controller = make(ImageElementController, source, bus)

        url = await controller.complete_upload("/tmp/logo.png", storage, "u", "file:///tmp/logo.png")

        assert url == "https://cdn.example.com/u/logo.png"
        assert source.content == url
        storage.upload.assert_awaited_once_with("/tmp/logo.png", "u")

    @pytest.mark.asyncio
    async def test_stale_upload_ignored(self, bus):
        """测试等待期间内容已变更时忽略上传结果."""
        source = FakeSource(content="file:///tmp/second.png")
        storage = MagicMock()
        storage.upload = AsyncMock(return_value="https://cdn.example.com/u/first.png")
        controller = make(ImageElementController, source, bus)

        url = await controller.complete_upload("/tmp/first.png", storage, "u", "file:///tmp/first.png")

        assert url is None
        assert source.content == "file:///tmp/second.png"

    def test_upload_during_drag_keeps_gesture(self, bus):
        """测试拖拽中应用上传结果不打断手势."""
        source = FakeSource(content="file:///tmp/a.png")
        controller = make(ImageElementController, source, bus)
        controller.pointer_down(PointerEvent(12, 12))
        controller.apply_durable_url("https://cdn/a.png", "file:///tmp/a.png")
        assert controller.is_dragging
        bus.dispatch_move(PointerEvent(20, 20))
        assert source.updates[-1].position == (18, 18)

    def test_handle_load_error_clears_content(self, bus):
        """测试图片加载失败时清空内容."""
        source = FakeSource(content="https://broken/image.png")
        controller = make(ImageElementController, source, bus)
        controller.handle_load_error()
        assert source.content == ""


# ===================
# 删除与工厂测试
# ===================


class TestDeleteAndFactory:
    """删除和工厂函数测试类."""

    def test_delete_cancels_and_reports(self, source, bus):
        """测试删除会结束手势并上报."""
        controller = make(ShapeElementController, source, bus)
        controller.pointer_down(PointerEvent(12, 12))
        controller.delete()
        assert source.deleted == ["e1"]
        assert bus.subscription_count == 0

    @pytest.mark.parametrize(
        "element_type, expected",
        [
            (ElementType.TEXT, TextElementController),
            (ElementType.IMAGE, ImageElementController),
            (ElementType.SHAPE, ShapeElementController),
            (ElementType.PLACEHOLDER, PlaceholderElementController),
            ("placeholder", PlaceholderElementController),
        ],
    )
    def test_create_controller(self, source, bus, element_type, expected):
        """测试按类型创建控制器."""
        controller = create_controller(element_type, "e1", source, bus, source.on_update, source.on_delete)
        assert type(controller) is expected
