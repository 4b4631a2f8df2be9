"""元素交互控制器.

每个画布元素对应一个控制器，维护自身的手势状态机：

    Idle -> Dragging -> Idle       拖拽（所有元素）
    Idle -> Resizing -> Idle       缩放（仅图片）
    Idle -> Editing  -> Idle       内联编辑（文字、占位符）

控制器不持有元素的持久数据，位置、尺寸和内容在每次手势开始时从元素来源读取，
所有变更通过回调上报给所属画布。全局指针移动/抬起监听只在手势进行期间订阅，
手势结束时无条件释放。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional, Protocol, Union

from certdesigner.core.page_layout import Rect
from certdesigner.core.placeholder_resolver import (
    sanitize_token_input,
    strip_token,
    wrap_token,
)
from certdesigner.models.template_config import ElementType, format_px
from certdesigner.utils.constants import MIN_ELEMENT_SIZE
from certdesigner.utils.logger import setup_logger

if TYPE_CHECKING:
    from certdesigner.services.image_storage import ImageStorage

logger = setup_logger(__name__)


# ===================
# 指针事件
# ===================


class PointerTarget(str, Enum):
    """指针按下的目标区域."""

    SURFACE = "surface"  # 元素自身表面
    CONTENT = "content"  # 元素内容区（文字、图片）
    RESIZE_HANDLE = "resize_handle"  # 缩放控制点
    CONTROL = "control"  # 子控件（上传按钮、删除图标等）


@dataclass(frozen=True)
class PointerEvent:
    """指针事件（画布像素坐标）."""

    x: float
    y: float
    target: PointerTarget = PointerTarget.SURFACE


# ===================
# 手势状态
# ===================


@dataclass(frozen=True)
class Idle:
    """空闲."""


@dataclass(frozen=True)
class Dragging:
    """拖拽中，offset 为指针与元素原点的固定偏移."""

    offset: tuple[float, float]
    from_content: bool = False
    moved: bool = False


@dataclass(frozen=True)
class Resizing:
    """缩放中，origin 为元素左上角."""

    origin: tuple[float, float]


@dataclass(frozen=True)
class Editing:
    """内联编辑中，draft 为编辑框中的文本."""

    draft: str


GestureState = Union[Idle, Dragging, Resizing, Editing]

IDLE = Idle()


# ===================
# 全局指针订阅
# ===================

PointerHandler = Callable[[PointerEvent], None]


class InputSubscription:
    """指针事件订阅.

    通过 ``release()`` 或 with 语句释放，重复释放无副作用。
    """

    def __init__(
        self,
        bus: "PointerEventBus",
        on_move: PointerHandler,
        on_up: PointerHandler,
    ) -> None:
        self._bus = bus
        self.on_move = on_move
        self.on_up = on_up
        self._active = True

    @property
    def active(self) -> bool:
        """是否仍在订阅中."""
        return self._active

    def release(self) -> None:
        """取消订阅."""
        if not self._active:
            return
        self._active = False
        self._bus._remove(self)

    def __enter__(self) -> "InputSubscription":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()


class PointerEventBus:
    """全局指针事件分发.

    画布把所有指针移动/抬起事件投递到这里，只有正在进行手势的控制器会订阅。
    """

    def __init__(self) -> None:
        self._subscriptions: list[InputSubscription] = []

    @property
    def subscription_count(self) -> int:
        """当前订阅数量."""
        return len(self._subscriptions)

    @property
    def has_active_gesture(self) -> bool:
        """是否有手势正在进行."""
        return bool(self._subscriptions)

    def subscribe(self, on_move: PointerHandler, on_up: PointerHandler) -> InputSubscription:
        """订阅指针移动和抬起事件."""
        subscription = InputSubscription(self, on_move, on_up)
        self._subscriptions.append(subscription)
        return subscription

    def dispatch_move(self, event: PointerEvent) -> None:
        """分发指针移动事件."""
        for subscription in list(self._subscriptions):
            if subscription.active:
                subscription.on_move(event)

    def dispatch_up(self, event: PointerEvent) -> None:
        """分发指针抬起事件."""
        for subscription in list(self._subscriptions):
            if subscription.active:
                subscription.on_up(event)

    def _remove(self, subscription: InputSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)


# ===================
# 更新上报
# ===================


@dataclass
class ElementUpdate:
    """元素局部更新.

    Attributes:
        content: 新内容
        position: 新位置（画布像素坐标）
        style: 新的完整样式
    """

    content: Optional[str] = None
    position: Optional[tuple[float, float]] = None
    style: Optional[dict[str, str]] = field(default=None)

    @property
    def is_empty(self) -> bool:
        return self.content is None and self.position is None and self.style is None


class ElementSource(Protocol):
    """元素数据来源（通常是设计画布），几何信息以画布像素表示."""

    def element_geometry(self, element_id: str) -> Rect: ...

    def element_content(self, element_id: str) -> str: ...

    def element_style(self, element_id: str) -> dict[str, str]: ...


UpdateCallback = Callable[[str, ElementUpdate], None]
DeleteCallback = Callable[[str], None]


# ===================
# 控制器基类
# ===================


class ElementController:
    """元素控制器基类.

    提供拖拽和删除。子类扩展缩放、内联编辑、图片替换。

    Example:
        >>> bus = PointerEventBus()
        >>> controller = ElementController("e1", surface, bus, on_update, on_delete)
        >>> controller.pointer_down(PointerEvent(12, 12))
        True
        >>> bus.dispatch_move(PointerEvent(17, 20))
        >>> bus.dispatch_up(PointerEvent(17, 20))
    """

    # 可以开始拖拽的目标区域
    DRAG_TARGETS = frozenset({PointerTarget.SURFACE, PointerTarget.CONTENT})

    def __init__(
        self,
        element_id: str,
        source: ElementSource,
        bus: PointerEventBus,
        on_update: UpdateCallback,
        on_delete: DeleteCallback,
    ) -> None:
        self._element_id = element_id
        self._source = source
        self._bus = bus
        self._on_update = on_update
        self._on_delete = on_delete
        self._state: GestureState = IDLE
        self._subscription: Optional[InputSubscription] = None

    @property
    def element_id(self) -> str:
        return self._element_id

    @property
    def state(self) -> GestureState:
        """当前手势状态."""
        return self._state

    @property
    def is_idle(self) -> bool:
        return isinstance(self._state, Idle)

    @property
    def is_dragging(self) -> bool:
        return isinstance(self._state, Dragging)

    # ========================
    # 指针事件
    # ========================

    def pointer_down(self, event: PointerEvent) -> bool:
        """指针按下.

        Args:
            event: 指针事件

        Returns:
            是否开始了手势
        """
        if not self.is_idle or event.target not in self.DRAG_TARGETS:
            return False

        geometry = self._source.element_geometry(self._element_id)
        self._state = Dragging(
            offset=(event.x - geometry.x, event.y - geometry.y),
            from_content=event.target == PointerTarget.CONTENT,
        )
        self._begin_gesture()
        logger.debug(f"开始拖拽: {self._element_id}")
        return True

    def _on_pointer_move(self, event: PointerEvent) -> None:
        state = self._state
        if isinstance(state, Dragging):
            dx, dy = state.offset
            if not state.moved:
                self._state = Dragging(state.offset, state.from_content, moved=True)
            self._report(ElementUpdate(position=(event.x - dx, event.y - dy)))

    def _on_pointer_up(self, event: PointerEvent) -> None:
        state = self._state
        self._end_gesture()
        if isinstance(state, Dragging) and state.from_content and not state.moved:
            # 点击内容（未移动）进入编辑
            self._on_content_click()

    def _on_content_click(self) -> None:
        """点击内容区（子类可进入编辑模式）."""

    # ========================
    # 手势生命周期
    # ========================

    def _begin_gesture(self) -> None:
        self._release_subscription()
        self._subscription = self._bus.subscribe(self._on_pointer_move, self._on_pointer_up)

    def _end_gesture(self) -> None:
        if not isinstance(self._state, Editing):
            self._state = IDLE
        self._release_subscription()

    def _release_subscription(self) -> None:
        if self._subscription is not None:
            self._subscription.release()
            self._subscription = None

    def cancel(self) -> None:
        """中止任何进行中的手势或编辑，回到空闲."""
        self._release_subscription()
        self._state = IDLE

    def delete(self) -> None:
        """从所属画布删除元素（本层不可撤销）."""
        self.cancel()
        logger.debug(f"删除元素: {self._element_id}")
        self._on_delete(self._element_id)

    def _report(self, update: ElementUpdate) -> None:
        if not update.is_empty:
            self._on_update(self._element_id, update)


# ===================
# 图片控制器
# ===================


class ImageElementController(ElementController):
    """图片元素控制器.

    支持拖拽、右下角控制点缩放（宽高不小于 MIN_ELEMENT_SIZE）、
    图片替换（先显示本地预览，再异步换成持久地址）和加载失败恢复。
    """

    def pointer_down(self, event: PointerEvent) -> bool:
        if self.is_idle and event.target == PointerTarget.RESIZE_HANDLE:
            geometry = self._source.element_geometry(self._element_id)
            self._state = Resizing(origin=(geometry.x, geometry.y))
            self._begin_gesture()
            logger.debug(f"开始缩放: {self._element_id}")
            return True
        return super().pointer_down(event)

    def _on_pointer_move(self, event: PointerEvent) -> None:
        state = self._state
        if isinstance(state, Resizing):
            ox, oy = state.origin
            width = max(MIN_ELEMENT_SIZE, event.x - ox)
            height = max(MIN_ELEMENT_SIZE, event.y - oy)
            style = dict(self._source.element_style(self._element_id))
            style["width"] = format_px(width)
            style["height"] = format_px(height)
            self._report(ElementUpdate(style=style))
            return
        super()._on_pointer_move(event)

    def replace_image(self, file_path: str, storage: "ImageStorage") -> str:
        """选择图片后立即使用本地预览地址.

        Args:
            file_path: 本地图片路径
            storage: 图片存储

        Returns:
            本地预览地址
        """
        local_ref = storage.local_preview(file_path)
        self._report(ElementUpdate(content=local_ref))
        return local_ref

    async def complete_upload(
        self,
        file_path: str,
        storage: "ImageStorage",
        user_id: str,
        local_ref: Optional[str] = None,
    ) -> Optional[str]:
        """上传到持久存储并替换为持久地址.

        如果等待期间内容已被再次替换，则不覆盖。

        Args:
            file_path: 本地图片路径
            storage: 图片存储
            user_id: 用户标识
            local_ref: replace_image 返回的本地预览地址

        Returns:
            持久地址；内容已变化时返回 None
        """
        url = await storage.upload(file_path, user_id)
        return self.apply_durable_url(url, local_ref)

    def apply_durable_url(self, url: str, local_ref: Optional[str] = None) -> Optional[str]:
        """用持久地址替换本地预览地址."""
        if local_ref is not None and self._source.element_content(self._element_id) != local_ref:
            logger.info(f"图片内容已变更，忽略过期的上传结果: {self._element_id}")
            return None
        self._report(ElementUpdate(content=url))
        return url

    def handle_load_error(self) -> None:
        """图片加载失败，清空内容回到上传提示状态."""
        logger.warning(f"图片加载失败，已清空: {self._element_id}")
        self._report(ElementUpdate(content=""))


# ===================
# 可编辑控制器
# ===================


class EditableElementController(ElementController):
    """支持内联编辑的元素控制器."""

    @property
    def is_editing(self) -> bool:
        return isinstance(self._state, Editing)

    @property
    def draft(self) -> Optional[str]:
        """当前编辑文本."""
        return self._state.draft if isinstance(self._state, Editing) else None

    def _to_draft(self, content: str) -> str:
        return content

    def _filter(self, text: str) -> str:
        return text

    def _to_content(self, draft: str) -> str:
        return draft

    def _on_content_click(self) -> None:
        self.begin_edit()

    def begin_edit(self) -> bool:
        """进入编辑模式，编辑框预填当前内容.

        Returns:
            是否进入了编辑模式
        """
        if not self.is_idle:
            return False
        content = self._source.element_content(self._element_id)
        self._state = Editing(draft=self._to_draft(content))
        logger.debug(f"开始编辑: {self._element_id}")
        return True

    def input_text(self, text: str) -> Optional[str]:
        """编辑框输入变化.

        Args:
            text: 编辑框的完整文本

        Returns:
            过滤后的文本；不在编辑模式时返回 None
        """
        if not self.is_editing:
            return None
        draft = self._filter(text)
        self._state = Editing(draft=draft)
        self._report(ElementUpdate(content=self._to_content(draft)))
        return draft

    def commit(self) -> None:
        """提交编辑（失焦或确认键），回到显示模式."""
        if self.is_editing:
            self._state = IDLE
            logger.debug(f"结束编辑: {self._element_id}")


class TextElementController(EditableElementController):
    """文字元素控制器."""


class PlaceholderElementController(EditableElementController):
    """占位符元素控制器.

    编辑时去掉 ``{{ }}``，输入只保留字母、数字、下划线和点，提交时重新包装。
    """

    def _to_draft(self, content: str) -> str:
        return strip_token(content)

    def _filter(self, text: str) -> str:
        return sanitize_token_input(text)

    def _to_content(self, draft: str) -> str:
        return wrap_token(draft)


class ShapeElementController(ElementController):
    """形状元素控制器（拖拽和删除）."""


# ===================
# 工厂函数
# ===================

_CONTROLLER_CLASSES: dict[ElementType, type[ElementController]] = {
    ElementType.TEXT: TextElementController,
    ElementType.IMAGE: ImageElementController,
    ElementType.SHAPE: ShapeElementController,
    ElementType.PLACEHOLDER: PlaceholderElementController,
}


def create_controller(
    element_type: ElementType | str,
    element_id: str,
    source: ElementSource,
    bus: PointerEventBus,
    on_update: UpdateCallback,
    on_delete: DeleteCallback,
) -> ElementController:
    """根据元素类型创建控制器.

    Args:
        element_type: 元素类型
        element_id: 元素ID
        source: 元素数据来源
        bus: 指针事件分发器
        on_update: 更新回调
        on_delete: 删除回调

    Returns:
        对应类型的控制器
    """
    controller_class = _CONTROLLER_CLASSES[ElementType(element_type)]
    return controller_class(element_id, source, bus, on_update, on_delete)
