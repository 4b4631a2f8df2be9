"""证书模板浏览面板.

左侧列出当前用户的模板，下方列出其他用户公开的模板。

Features:
    - 新建（默认证书设计）、打开、重命名、复制、删除
    - 切换公开状态
    - 导入/导出 .template.json 文件
    - 公开模板双击后复制为自己的模板
"""

from __future__ import annotations

from typing import Callable, Optional, TypeVar

from PyQt6.QtCore import Qt, pyqtSignal
from PyQt6.QtGui import QAction
from PyQt6.QtWidgets import (
    QFileDialog,
    QFrame,
    QInputDialog,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QMenu,
    QMessageBox,
    QToolBar,
    QVBoxLayout,
    QWidget,
)

from certdesigner.services.template_manager import (
    TEMPLATE_EXTENSION,
    TemplateManager,
    TemplateMetadata,
    create_certificate_design,
)
from certdesigner.utils.error_handler import log_and_describe
from certdesigner.utils.exceptions import AppException
from certdesigner.utils.logger import setup_logger

logger = setup_logger(__name__)

T = TypeVar("T")

PUBLIC_COPY_SUFFIX = " - 我的版本"
DEFAULT_TEMPLATE_NAME = "未命名证书"


def describe_template(metadata: TemplateMetadata) -> str:
    """生成模板悬停提示."""
    updated = metadata.updated_at.strftime("%Y-%m-%d %H:%M") if metadata.updated_at else "未知"
    lines = [
        metadata.name,
        f"{metadata.element_count} 个元素，更新于 {updated}",
    ]
    if metadata.description:
        lines.append(metadata.description)
    if metadata.is_public:
        lines.append("已公开")
    return "\n".join(lines)


def _make_item(metadata: TemplateMetadata) -> QListWidgetItem:
    item = QListWidgetItem(metadata.name)
    item.setData(Qt.ItemDataRole.UserRole, metadata)
    item.setToolTip(describe_template(metadata))
    if metadata.is_public:
        item.setForeground(Qt.GlobalColor.darkBlue)
    return item


def _item_metadata(item: Optional[QListWidgetItem]) -> Optional[TemplateMetadata]:
    if item is None:
        return None
    return item.data(Qt.ItemDataRole.UserRole)


class TemplateListWidget(QFrame):
    """模板浏览面板.

    所有操作都经过 TemplateManager，失败时弹出提示并保持列表不变。

    Signals:
        template_selected: 打开模板 (template_id)
        template_created: 新模板已创建 (template_id)
        template_deleted: 模板已删除 (template_id)
    """

    template_selected = pyqtSignal(str)
    template_created = pyqtSignal(str)
    template_deleted = pyqtSignal(str)

    def __init__(self, manager: TemplateManager, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._manager = manager
        self._actions: dict[str, QAction] = {}
        self._build()
        self.refresh()

    # ========================
    # 界面
    # ========================

    def _build(self) -> None:
        self._add_action("new", "新建", self._prompt_new, "新建证书模板")
        self._add_action("open", "打开", self._open_current)
        self._add_action("rename", "重命名", self._prompt_rename)
        self._add_action("duplicate", "复制", self._duplicate_current)
        self._add_action("share", "公开", self._toggle_public_current)
        self._add_action("import", "导入", self._prompt_import)
        self._add_action("export", "导出", self._prompt_export)
        self._add_action("delete", "删除", self._confirm_delete)
        self._add_action("refresh", "刷新", self.refresh)

        toolbar = QToolBar()
        toolbar.setToolButtonStyle(Qt.ToolButtonStyle.ToolButtonTextOnly)
        for key in ("new", "import", "export", "delete", "refresh"):
            toolbar.addAction(self._actions[key])

        self._own_list = QListWidget()
        self._own_list.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)
        self._own_list.customContextMenuRequested.connect(self._show_context_menu)
        self._own_list.itemClicked.connect(self._open_item)
        self._own_list.currentItemChanged.connect(lambda *_: self._sync_actions())

        self._public_list = QListWidget()
        self._public_list.setMaximumHeight(150)
        self._public_list.setToolTip("双击复制为我的模板")
        self._public_list.itemDoubleClicked.connect(self._copy_public_item)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(4, 4, 4, 4)
        layout.setSpacing(4)
        layout.addWidget(toolbar)
        layout.addWidget(QLabel("我的模板"))
        layout.addWidget(self._own_list, 1)
        layout.addWidget(QLabel("公开模板"))
        layout.addWidget(self._public_list)

        self._sync_actions()

    def _add_action(
        self, key: str, text: str, slot: Callable[[], object], tooltip: str = ""
    ) -> None:
        action = QAction(text, self)
        if tooltip:
            action.setToolTip(tooltip)
        action.triggered.connect(lambda _checked=False: slot())
        self._actions[key] = action

    def _sync_actions(self) -> None:
        """按当前选中项启用操作."""
        current = self.current_metadata
        for key in ("open", "rename", "duplicate", "share", "export", "delete"):
            self._actions[key].setEnabled(current is not None)
        if current is not None:
            self._actions["share"].setText("取消公开" if current.is_public else "公开")

    def _show_context_menu(self, pos) -> None:
        if self._own_list.itemAt(pos) is None:
            return
        menu = QMenu(self)
        for key in ("open", "rename", None, "duplicate", "share", "export", None, "delete"):
            if key is None:
                menu.addSeparator()
            else:
                menu.addAction(self._actions[key])
        menu.exec(self._own_list.mapToGlobal(pos))

    # ========================
    # 公共方法
    # ========================

    def refresh(self) -> None:
        """从存储重新加载列表，保留当前选中项."""
        selected = self.get_selected_template_id()
        templates = self._attempt(
            "加载失败", "获取模板列表失败", lambda: self._manager.list_templates(include_public=True)
        )
        if templates is None:
            return

        self._own_list.clear()
        self._public_list.clear()
        for metadata in templates:
            target = self._own_list if metadata.user_id == self._manager.user_id else self._public_list
            target.addItem(_make_item(metadata))

        if selected:
            self.select_template(selected)
        self._sync_actions()

    @property
    def template_count(self) -> int:
        """我的模板数量."""
        return self._own_list.count()

    @property
    def public_count(self) -> int:
        """其他用户公开模板数量."""
        return self._public_list.count()

    @property
    def current_metadata(self) -> Optional[TemplateMetadata]:
        return _item_metadata(self._own_list.currentItem())

    def get_selected_template_id(self) -> Optional[str]:
        current = self.current_metadata
        return current.id if current else None

    def select_template(self, template_id: str) -> None:
        for row in range(self._own_list.count()):
            item = self._own_list.item(row)
            metadata = _item_metadata(item)
            if metadata and metadata.id == template_id:
                self._own_list.setCurrentItem(item)
                return

    def create_template(self, name: str) -> Optional[str]:
        """以默认证书设计新建模板并打开.

        Returns:
            新模板 ID，失败时为 None
        """
        template = self._attempt(
            "创建失败",
            "新建模板失败",
            lambda: self._manager.create_template(name, design=create_certificate_design()),
        )
        if template is None:
            return None
        self._announce_created(template.id, open_it=True)
        return template.id

    def delete_template(self, template_id: str) -> bool:
        """删除模板（不再确认）."""
        def delete() -> bool:
            self._manager.delete_template(template_id)
            return True

        if not self._attempt("删除失败", "删除模板失败", delete):
            return False
        self.refresh()
        self.template_deleted.emit(template_id)
        return True

    # ========================
    # 内部操作
    # ========================

    def _attempt(self, title: str, context: str, operation: Callable[[], T]) -> Optional[T]:
        """执行存储操作，失败时提示并返回 None."""
        try:
            return operation()
        except AppException as e:
            QMessageBox.warning(self, title, log_and_describe(e, context))
            return None

    def _announce_created(self, template_id: str, open_it: bool = False) -> None:
        self.refresh()
        self.select_template(template_id)
        self.template_created.emit(template_id)
        if open_it:
            self.template_selected.emit(template_id)

    def _open_item(self, item: QListWidgetItem) -> None:
        metadata = _item_metadata(item)
        if metadata:
            self.template_selected.emit(metadata.id)

    def _open_current(self) -> None:
        self._open_item(self._own_list.currentItem())

    def _copy_public_item(self, item: QListWidgetItem) -> None:
        metadata = _item_metadata(item)
        if metadata is None:
            return

        def copy():
            source = self._manager.load_public_template(metadata.id)
            return self._manager.create_template(
                f"{source.name}{PUBLIC_COPY_SUFFIX}",
                description=source.description,
                design=source.design_data,
            )

        template = self._attempt("创建失败", "复制公开模板失败", copy)
        if template is not None:
            logger.info(f"公开模板已复制: {metadata.id} -> {template.id}")
            self._announce_created(template.id, open_it=True)

    def _prompt_new(self) -> None:
        name, ok = QInputDialog.getText(self, "新建模板", "模板名称:", text=DEFAULT_TEMPLATE_NAME)
        if ok and name.strip():
            self.create_template(name.strip())

    def _prompt_rename(self) -> None:
        current = self.current_metadata
        if current is None:
            return
        name, ok = QInputDialog.getText(self, "重命名", "新名称:", text=current.name)
        name = name.strip()
        if not ok or not name or name == current.name:
            return
        renamed = self._attempt(
            "重命名失败", "重命名模板失败", lambda: self._manager.rename_template(current.id, name)
        )
        if renamed is not None:
            self.refresh()

    def _duplicate_current(self) -> None:
        current = self.current_metadata
        if current is None:
            return
        template = self._attempt(
            "复制失败", "复制模板失败", lambda: self._manager.duplicate_template(current.id)
        )
        if template is not None:
            self._announce_created(template.id)

    def _toggle_public_current(self) -> None:
        current = self.current_metadata
        if current is None:
            return
        updated = self._attempt(
            "操作失败",
            "更新公开状态失败",
            lambda: self._manager.update_metadata(current.id, is_public=not current.is_public),
        )
        if updated is not None:
            self.refresh()

    def _confirm_delete(self) -> None:
        current = self.current_metadata
        if current is None:
            return
        reply = QMessageBox.question(
            self,
            "删除模板",
            f"删除 \"{current.name}\" 后无法恢复，是否继续？",
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
            QMessageBox.StandardButton.No,
        )
        if reply == QMessageBox.StandardButton.Yes:
            self.delete_template(current.id)

    def _prompt_import(self) -> None:
        path, _ = QFileDialog.getOpenFileName(
            self, "导入模板", "", f"证书模板 (*{TEMPLATE_EXTENSION});;所有文件 (*)"
        )
        if not path:
            return
        template = self._attempt("导入失败", "导入模板失败", lambda: self._manager.import_template(path))
        if template is not None:
            self._announce_created(template.id)

    def _prompt_export(self) -> None:
        current = self.current_metadata
        if current is None:
            return
        path, _ = QFileDialog.getSaveFileName(
            self, "导出模板", f"{current.name}{TEMPLATE_EXTENSION}", f"证书模板 (*{TEMPLATE_EXTENSION})"
        )
        if not path:
            return
        exported = self._attempt(
            "导出失败", "导出模板失败", lambda: self._manager.export_template(current.id, path)
        )
        if exported is not None:
            logger.info(f"模板已导出: {exported}")
