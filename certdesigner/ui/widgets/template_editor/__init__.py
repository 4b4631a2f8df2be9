"""模板编辑器组件模块.

提供证书模板的可视化编辑功能，包括画布视图、元素图形项、内联编辑、
页面属性、撤销/重做、图片上传和预览。

Components:
    - TemplateCanvas: 画布视图组件
    - ElementGraphicsItem: 元素图形项基类
    - PlaceholderEditOverlay: 内联编辑覆盖层
    - PagePropertiesPanel: 页面属性面板
    - TemplateListWidget: 模板列表
    - UndoRedoManager: 撤销/重做管理器
    - UploadController: 后台图片上传
    - PreviewDialog: 预览对话框
"""

from certdesigner.ui.widgets.template_editor.canvas import TemplateCanvas, TemplateScene
from certdesigner.ui.widgets.template_editor.element_items import (
    ElementGraphicsItem,
    TextElementItem,
    PlaceholderElementItem,
    ImageElementItem,
    ShapeElementItem,
    create_element_item,
)
from certdesigner.ui.widgets.template_editor.placeholder_edit_overlay import (
    PlaceholderEditOverlay,
    InlineLineEdit,
)
from certdesigner.ui.widgets.template_editor.page_properties_panel import (
    PagePropertiesPanel,
    ColorButton,
    SpacingEditor,
)
from certdesigner.ui.widgets.template_editor.template_list import (
    TemplateListWidget,
    describe_template,
)
from certdesigner.ui.widgets.template_editor.undo_redo import (
    Command,
    CommandStack,
    UndoRedoManager,
)
from certdesigner.ui.widgets.template_editor.upload_worker import (
    UploadController,
    UploadWorker,
)
from certdesigner.ui.widgets.template_editor.preview_dialog import PreviewDialog

__all__ = [
    "TemplateCanvas",
    "TemplateScene",
    "ElementGraphicsItem",
    "TextElementItem",
    "PlaceholderElementItem",
    "ImageElementItem",
    "ShapeElementItem",
    "create_element_item",
    "PlaceholderEditOverlay",
    "InlineLineEdit",
    "PagePropertiesPanel",
    "ColorButton",
    "SpacingEditor",
    "TemplateListWidget",
    "describe_template",
    "Command",
    "CommandStack",
    "UndoRedoManager",
    "UploadController",
    "UploadWorker",
    "PreviewDialog",
]
