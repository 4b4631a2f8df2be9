"""UI 组件模块."""

from certdesigner.ui.widgets.template_editor import (
    PagePropertiesPanel,
    PreviewDialog,
    TemplateCanvas,
    TemplateListWidget,
    UndoRedoManager,
)

__all__ = [
    "PagePropertiesPanel",
    "PreviewDialog",
    "TemplateCanvas",
    "TemplateListWidget",
    "UndoRedoManager",
]
