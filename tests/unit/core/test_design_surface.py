"""设计画布单元测试."""

import pytest
from pydantic import ValidationError

from certdesigner.core.design_surface import DesignSurface, SurfaceChange
from certdesigner.core.element_controller import (
    ImageElementController,
    PlaceholderElementController,
    PointerEvent,
    PointerTarget,
)
from certdesigner.models.template_config import (
    DesignDocument,
    Element,
    ElementType,
    Orientation,
    Position,
    Unit,
)
from certdesigner.utils.exceptions import ElementNotFoundError


@pytest.fixture
def surface(sample_document) -> DesignSurface:
    return DesignSurface(sample_document)


@pytest.fixture
def changes(surface) -> list:
    recorded = []
    surface.add_listener(lambda change, element_id: recorded.append((change, element_id)))
    return recorded


class TestElementManagement:
    """元素管理测试类."""

    def test_add_element_on_top(self, surface, changes):
        """测试新元素添加到最上层."""
        element = surface.add_element(ElementType.TEXT, "New", 5, 5)
        assert surface.element_ids[-1] == element.id
        assert len(surface) == 5
        assert changes == [(SurfaceChange.ADDED, element.id)]

    def test_add_element_unique_ids(self, surface):
        """测试元素 ID 唯一."""
        ids = {surface.add_element(ElementType.SHAPE).id for _ in range(20)}
        assert len(ids) == 20

    def test_update_merges_style(self, surface, sample_document):
        """测试局部更新合并样式，其余字段不变."""
        shape = sample_document.elements[0]
        updated = surface.update_element(shape.id, style={"height": "40px", "color": "#333"})
        assert updated.style == {"width": "100px", "height": "40px", "color": "#333"}
        assert updated.position == shape.position
        assert updated.content == shape.content

    def test_update_content_only(self, surface, sample_document, changes):
        """测试只更新内容."""
        text = sample_document.elements[1]
        surface.update_element(text.id, content="Diploma")
        assert surface.get_element(text.id).content == "Diploma"
        assert surface.get_element(text.id).position == text.position
        assert changes == [(SurfaceChange.UPDATED, text.id)]

    def test_empty_update_no_notification(self, surface, sample_document, changes):
        """测试空更新不通知."""
        surface.update_element(sample_document.elements[0].id)
        assert changes == []

    def test_update_unknown_element(self, surface):
        """测试更新不存在的元素."""
        with pytest.raises(ElementNotFoundError):
            surface.update_element("missing", content="x")

    def test_delete_preserves_order(self, surface, sample_document):
        """测试删除只移除一个元素，其余顺序不变."""
        ids = [e.id for e in sample_document.elements]
        surface.delete_element(ids[1])
        assert surface.element_ids == [ids[0], ids[2], ids[3]]

    def test_update_preserves_order(self, surface, sample_document):
        """测试更新不改变层级顺序."""
        ids = [e.id for e in sample_document.elements]
        surface.update_element(ids[0], position=Position(x=90, y=90))
        assert surface.element_ids == ids

    def test_insert_element_at_index(self, surface, sample_document):
        """测试在原位置重新插入."""
        ids = [e.id for e in sample_document.elements]
        removed = surface.delete_element(ids[2])
        surface.insert_element(2, removed)
        assert surface.element_ids == ids

    def test_insert_duplicate_rejected(self, surface, sample_document):
        """测试重复 ID 插入失败."""
        with pytest.raises(ValueError):
            surface.insert_element(0, sample_document.elements[0])

    def test_replace_element_type_immutable(self, surface, sample_document):
        """测试整体替换不能修改类型."""
        shape = sample_document.elements[0]
        changed = Element(id=shape.id, type=ElementType.TEXT)
        with pytest.raises(ValueError):
            surface.replace_element(changed)

    def test_delete_clears_selection(self, surface, sample_document):
        """测试删除选中元素时清除选中."""
        element_id = sample_document.elements[0].id
        surface.select(element_id)
        surface.delete_element(element_id)
        assert surface.selected_id is None


class TestControllerIntegration:
    """控制器与画布联动测试类."""

    def test_drag_updates_percent_position(self, surface, sample_document):
        """测试拖拽上报的像素坐标换算为百分比."""
        text = sample_document.elements[1]
        controller = surface.controller_for(text.id)
        x, y = surface.layout.to_pixels(text.position)

        controller.pointer_down(PointerEvent(x + 5, y + 5))
        surface.bus.dispatch_move(PointerEvent(x + 5 + 90, y + 5 + 40))
        surface.bus.dispatch_up(PointerEvent(x + 95, y + 45))

        # 内容区 900×400：90px = 10%，40px = 10%
        position = surface.get_element(text.id).position
        assert position.x == pytest.approx(text.position.x + 10)
        assert position.y == pytest.approx(text.position.y + 10)

    def test_controller_cached_per_element(self, surface, sample_document):
        """测试同一元素复用控制器."""
        element_id = sample_document.elements[2].id
        controller = surface.controller_for(element_id)
        assert controller is surface.controller_for(element_id)
        assert isinstance(controller, PlaceholderElementController)

    def test_controller_delete_removes_element(self, surface, sample_document):
        """测试通过控制器删除元素."""
        element_id = sample_document.elements[3].id
        surface.controller_for(element_id).delete()
        assert element_id not in surface

    def test_image_resize_merges_style(self, surface, sample_document):
        """测试图片缩放写入像素宽高."""
        image = sample_document.elements[3]
        controller = surface.controller_for(image.id)
        assert isinstance(controller, ImageElementController)
        x, y = surface.layout.to_pixels(image.position)

        controller.pointer_down(PointerEvent(x + 200, y + 200, PointerTarget.RESIZE_HANDLE))
        surface.bus.dispatch_move(PointerEvent(x + 120, y + 10))

        assert surface.get_element(image.id).style == {"width": "120px", "height": "50px"}

    def test_placeholder_edit_updates_surface(self, surface, sample_document):
        """测试内联编辑更新画布中的内容."""
        placeholder = sample_document.elements[2]
        controller = surface.controller_for(placeholder.id)
        controller.begin_edit()
        controller.input_text("certificate.id")
        controller.commit()
        assert surface.get_element(placeholder.id).content == "{{certificate.id}}"

    def test_element_geometry_uses_style_size(self, surface, sample_document):
        """测试几何信息使用样式中的尺寸."""
        shape = sample_document.elements[0]
        geometry = surface.element_geometry(shape.id)
        assert (geometry.x, geometry.y) == (50, 50)
        assert (geometry.width, geometry.height) == (100, 20)


class TestSerialization:
    """序列化测试类."""

    def test_serialize_shape(self, surface):
        """测试序列化为 {elements, properties}."""
        data = surface.serialize()
        assert set(data) == {"elements", "properties"}
        assert [e["type"] for e in data["elements"]] == ["shape", "text", "placeholder", "image"]
        assert data["properties"]["size"]["unit"] == "px"

    def test_deserialize_round_trip(self, surface):
        """测试序列化后加载得到相同文档."""
        data = surface.serialize()
        other = DesignSurface()
        other.deserialize(data)
        assert other.to_document() == surface.to_document()

    def test_deserialize_fills_defaults(self, changes, surface):
        """测试缺失的页面属性自动补全."""
        surface.deserialize({"elements": [{"type": "text", "content": "Hi"}], "properties": {"orientation": "landscape"}})
        properties = surface.properties
        assert properties.orientation == Orientation.LANDSCAPE
        assert properties.size.width == 210
        assert properties.size.unit == Unit.MM
        assert properties.background.value == "#ffffff"
        assert properties.margins.top == 0
        assert surface.elements[0].position == Position(x=0, y=0)
        assert changes[-1] == (SurfaceChange.RESET, None)

    def test_deserialize_duplicate_ids_rejected(self, surface, changes):
        """测试元素 ID 重复的数据无法加载，原有内容不变."""
        before = surface.to_document()
        with pytest.raises(ValidationError):
            surface.deserialize({"elements": [{"id": "a", "type": "text"}, {"id": "a", "type": "shape"}]})
        assert surface.to_document() == before
        assert changes == []

    def test_deserialize_none(self, surface):
        """测试空数据加载为空白设计."""
        surface.deserialize(None)
        assert len(surface) == 0
        assert surface.to_document() == DesignDocument()

    def test_set_properties_recomputes_layout(self, surface, changes):
        """测试修改页面属性重新计算布局."""
        properties = surface.properties.model_copy(update={"orientation": Orientation.LANDSCAPE})
        surface.set_properties(properties)
        assert surface.layout.page.width == 500
        assert surface.layout.page.height == 1000
        assert changes == [(SurfaceChange.PROPERTIES, None)]
