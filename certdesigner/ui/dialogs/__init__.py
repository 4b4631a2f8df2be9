"""对话框模块."""

from certdesigner.ui.dialogs.template_editor_window import TemplateEditorWindow

__all__ = [
    "TemplateEditorWindow",
]
