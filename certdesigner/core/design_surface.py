"""设计画布模型.

持有正在编辑的模板的有序元素列表和页面属性，向元素控制器提供按 ID 的局部更新
和删除操作，向持久化层提供整个设计文档的序列化/反序列化。

列表顺序即层级顺序：后面的元素显示在前面的元素之上，所有修改都保持该顺序。
位置以内容区百分比存储，像素坐标只在控制器交互边界换算。
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Mapping, Optional

from certdesigner.core.element_controller import (
    ElementController,
    ElementUpdate,
    PointerEventBus,
    create_controller,
)
from certdesigner.core.page_layout import PageLayout, Rect, compute_layout
from certdesigner.models.template_config import (
    DesignDocument,
    Element,
    ElementType,
    Position,
    TemplateProperties,
)
from certdesigner.utils.exceptions import ElementNotFoundError
from certdesigner.utils.logger import setup_logger

logger = setup_logger(__name__)


class SurfaceChange(str, Enum):
    """画布变更类型."""

    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"
    PROPERTIES = "properties"
    RESET = "reset"


SurfaceListener = Callable[[SurfaceChange, Optional[str]], None]


class DesignSurface:
    """设计画布.

    Example:
        >>> surface = DesignSurface()
        >>> element = surface.add_element(ElementType.PLACEHOLDER, "{{recipient.name}}", 10, 10)
        >>> surface.update_element(element.id, style={"color": "#333"})
        >>> surface.delete_element(element.id)
    """

    def __init__(self, document: Optional[DesignDocument] = None) -> None:
        document = document or DesignDocument()
        self._elements: list[Element] = [e.model_copy(deep=True) for e in document.elements]
        self._properties: TemplateProperties = document.properties.model_copy(deep=True)
        self._layout: PageLayout = compute_layout(self._properties)
        self._bus = PointerEventBus()
        self._controllers: dict[str, ElementController] = {}
        self._listeners: list[SurfaceListener] = []
        self._selected_id: Optional[str] = None

    # ========================
    # 属性
    # ========================

    @property
    def elements(self) -> list[Element]:
        """元素列表副本（层级从低到高）."""
        return list(self._elements)

    @property
    def element_ids(self) -> list[str]:
        return [e.id for e in self._elements]

    @property
    def properties(self) -> TemplateProperties:
        return self._properties

    @property
    def layout(self) -> PageLayout:
        """当前页面布局（编辑器比例 1:1）."""
        return self._layout

    @property
    def bus(self) -> PointerEventBus:
        """指针事件分发器."""
        return self._bus

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    def __len__(self) -> int:
        return len(self._elements)

    def __contains__(self, element_id: object) -> bool:
        return any(e.id == element_id for e in self._elements)

    # ========================
    # 监听
    # ========================

    def add_listener(self, listener: SurfaceListener) -> None:
        """注册变更监听."""
        self._listeners.append(listener)

    def remove_listener(self, listener: SurfaceListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, change: SurfaceChange, element_id: Optional[str] = None) -> None:
        for listener in list(self._listeners):
            listener(change, element_id)

    # ========================
    # 查询
    # ========================

    def index_of(self, element_id: str) -> int:
        """获取元素在列表中的位置.

        Raises:
            ElementNotFoundError: 元素不存在
        """
        for i, element in enumerate(self._elements):
            if element.id == element_id:
                return i
        raise ElementNotFoundError(element_id)

    def get_element(self, element_id: str) -> Element:
        """根据ID获取元素."""
        return self._elements[self.index_of(element_id)]

    # ========================
    # 元素管理
    # ========================

    def add_element(
        self,
        element_type: ElementType | str,
        content: str = "",
        x: float = 0.0,
        y: float = 0.0,
        style: Optional[Mapping[str, str]] = None,
    ) -> Element:
        """在最上层添加元素.

        Args:
            element_type: 元素类型
            content: 内容
            x: 水平位置百分比
            y: 垂直位置百分比
            style: 样式

        Returns:
            新元素
        """
        element = Element.create(element_type, content, x, y, style)
        self._elements.append(element)
        logger.debug(f"添加元素: {element.id} ({element.type.value})")
        self._notify(SurfaceChange.ADDED, element.id)
        return element

    def insert_element(self, index: int, element: Element) -> None:
        """在指定位置插入已有元素（撤销删除时使用）.

        Raises:
            ValueError: ID 已存在
        """
        if element.id in self:
            raise ValueError(f"元素ID重复: {element.id}")
        index = max(0, min(index, len(self._elements)))
        self._elements.insert(index, element.model_copy(deep=True))
        self._notify(SurfaceChange.ADDED, element.id)

    def update_element(
        self,
        element_id: str,
        content: Optional[str] = None,
        position: Optional[Position] = None,
        style: Optional[Mapping[str, str]] = None,
    ) -> Element:
        """局部更新元素，未提供的字段保持不变，样式按键合并.

        Args:
            element_id: 元素ID
            content: 新内容
            position: 新位置（百分比）
            style: 要合并的样式

        Returns:
            更新后的元素
        """
        index = self.index_of(element_id)
        element = self._elements[index]
        changes: dict[str, Any] = {}
        if content is not None:
            changes["content"] = content
        if position is not None:
            changes["position"] = Position(x=position.x, y=position.y)
        if style is not None:
            changes["style"] = element.merged_style(style)
        if not changes:
            return element

        updated = element.model_copy(update=changes, deep=True)
        self._elements[index] = updated
        self._notify(SurfaceChange.UPDATED, element_id)
        return updated

    def replace_element(self, element: Element) -> None:
        """整体替换同 ID 元素（撤销更新时使用），类型不可变."""
        index = self.index_of(element.id)
        if self._elements[index].type != element.type:
            raise ValueError("元素类型不可修改，请删除后重新创建")
        self._elements[index] = element.model_copy(deep=True)
        self._notify(SurfaceChange.UPDATED, element.id)

    def apply_update(self, element_id: str, update: ElementUpdate) -> Element:
        """应用控制器上报的更新（像素坐标换算为百分比）."""
        position = None
        if update.position is not None:
            position = self._layout.to_percent(*update.position)
        return self.update_element(
            element_id,
            content=update.content,
            position=position,
            style=update.style,
        )

    def delete_element(self, element_id: str) -> Element:
        """删除元素，其余元素相对顺序不变.

        Returns:
            被删除的元素
        """
        index = self.index_of(element_id)
        removed = self._elements.pop(index)
        controller = self._controllers.pop(element_id, None)
        if controller is not None:
            controller.cancel()
        if self._selected_id == element_id:
            self._selected_id = None
        logger.debug(f"删除元素: {element_id}")
        self._notify(SurfaceChange.REMOVED, element_id)
        return removed

    def select(self, element_id: Optional[str]) -> None:
        """设置当前选中元素."""
        if element_id is not None:
            self.index_of(element_id)
        self._selected_id = element_id

    # ========================
    # 页面属性
    # ========================

    def set_properties(self, properties: TemplateProperties) -> None:
        """更新页面属性并重新计算布局."""
        self._properties = properties.model_copy(deep=True)
        self._layout = compute_layout(self._properties)
        self._notify(SurfaceChange.PROPERTIES)

    # ========================
    # 控制器接口
    # ========================

    def element_geometry(self, element_id: str) -> Rect:
        """元素像素几何信息."""
        element = self.get_element(element_id)
        x, y = self._layout.to_pixels(element.position)
        width, height = element.size
        return Rect(x, y, width, height)

    def element_content(self, element_id: str) -> str:
        return self.get_element(element_id).content

    def element_style(self, element_id: str) -> dict[str, str]:
        return dict(self.get_element(element_id).style)

    def controller_for(self, element_id: str) -> ElementController:
        """获取（或创建）元素对应的控制器."""
        controller = self._controllers.get(element_id)
        if controller is None:
            element = self.get_element(element_id)
            controller = create_controller(
                element.type,
                element_id,
                self,
                self._bus,
                on_update=self.apply_update,
                on_delete=self.delete_element,
            )
            self._controllers[element_id] = controller
        return controller

    # ========================
    # 序列化
    # ========================

    def to_document(self) -> DesignDocument:
        """导出设计文档."""
        return DesignDocument(
            elements=[e.model_copy(deep=True) for e in self._elements],
            properties=self._properties.model_copy(deep=True),
        )

    def serialize(self) -> dict[str, Any]:
        """序列化为 {elements, properties} 字典."""
        return self.to_document().to_dict()

    def load_document(self, document: DesignDocument) -> None:
        """用设计文档替换全部内容."""
        for controller in self._controllers.values():
            controller.cancel()
        self._controllers.clear()
        self._elements = [e.model_copy(deep=True) for e in document.elements]
        self._properties = document.properties.model_copy(deep=True)
        self._layout = compute_layout(self._properties)
        self._selected_id = None
        self._notify(SurfaceChange.RESET)

    def deserialize(self, data: Optional[Mapping[str, Any]]) -> None:
        """从字典加载（缺失字段自动补全）."""
        self.load_document(DesignDocument.from_data(data))
