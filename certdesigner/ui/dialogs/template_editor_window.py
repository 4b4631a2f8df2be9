"""模板编辑器窗口.

提供证书模板编辑器主窗口，支持创建、编辑、预览和保存模板。

布局结构:
    ┌─────────────────────────────────────────────────────────────┐
    │                         工具栏                               │
    ├────────────────┬────────────────────┬───────────────────────┤
    │                │                    │                       │
    │   模板列表      │     画布编辑器     │     页面属性          │
    │   (左侧面板)    │     (中间区域)     │     (右侧面板)        │
    │                │                    │                       │
    └────────────────┴────────────────────┴───────────────────────┘
"""

from __future__ import annotations

from typing import Optional

from PyQt6.QtCore import Qt, pyqtSignal
from PyQt6.QtGui import QAction, QCloseEvent, QKeySequence
from PyQt6.QtWidgets import (
    QApplication,
    QFileDialog,
    QInputDialog,
    QMainWindow,
    QMenu,
    QMessageBox,
    QSplitter,
    QStatusBar,
    QToolBar,
    QVBoxLayout,
    QWidget,
)

from certdesigner.core.design_surface import DesignSurface, SurfaceChange
from certdesigner.core.element_controller import (
    EditableElementController,
    ImageElementController,
)
from certdesigner.models.template_config import (
    ELEMENT_TYPE_NAMES,
    DesignDocument,
    ElementType,
    Template,
    TemplateProperties,
)
from certdesigner.services.image_storage import ImageStorage
from certdesigner.services.template_manager import TemplateManager
from certdesigner.services.template_renderer import TemplateRenderer
from certdesigner.ui.widgets.template_editor import (
    PagePropertiesPanel,
    PreviewDialog,
    TemplateCanvas,
    TemplateListWidget,
    UndoRedoManager,
    UploadController,
)
from certdesigner.utils.constants import DEFAULT_PLACEHOLDER_TOKEN, WINDOW_MIN_HEIGHT, WINDOW_MIN_WIDTH
from certdesigner.utils.error_handler import log_and_describe
from certdesigner.utils.exceptions import AppException
from certdesigner.utils.logger import setup_logger

logger = setup_logger(__name__)


WINDOW_TITLE = "证书模板编辑器"

# 新元素的默认位置（内容区百分比）
NEW_ELEMENT_POSITION = (10.0, 10.0)

# 新元素的默认内容
NEW_ELEMENT_CONTENT = {
    ElementType.TEXT: "新文字",
    ElementType.PLACEHOLDER: DEFAULT_PLACEHOLDER_TOKEN,
    ElementType.IMAGE: "",
    ElementType.SHAPE: "",
}

# 新形状的默认样式
NEW_SHAPE_STYLE = {"background-color": "#d9d9d9"}


class TemplateEditorWindow(QMainWindow):
    """模板编辑器窗口.

    负责把画布手势、内联编辑和图片上传接入撤销栈，并通过模板管理器持久化。
    保存失败时只提示用户，画布内容保持不变，可以重试。

    Signals:
        template_saved: 模板保存成功 (Template)
        template_loaded: 模板加载完成 (Template)
    """

    template_saved = pyqtSignal(object)
    template_loaded = pyqtSignal(object)

    def __init__(
        self,
        manager: TemplateManager,
        storage: ImageStorage,
        renderer: Optional[TemplateRenderer] = None,
        parent: Optional[QWidget] = None,
    ) -> None:
        """初始化模板编辑器窗口.

        Args:
            manager: 模板管理器
            storage: 图片存储
            renderer: 预览渲染器
            parent: 父组件
        """
        super().__init__(parent)

        self._manager = manager
        self._storage = storage
        self._renderer = renderer or TemplateRenderer()

        self._template: Optional[Template] = None
        self._surface = DesignSurface()
        self._is_modified = False

        self._undo = UndoRedoManager(self._surface, parent=self)
        self._uploads = UploadController(storage, manager.user_id, self)

        self._setup_window()
        self._setup_actions()
        self._setup_menubar()
        self._setup_toolbar()
        self._setup_central_widget()
        self._setup_statusbar()
        self._connect_signals()

        self._bind_surface(self._surface)
        self._update_undo_actions()
        self._update_window_title()

        logger.debug("模板编辑器窗口初始化完成")

    # ========================
    # 公共属性
    # ========================

    @property
    def surface(self) -> DesignSurface:
        return self._surface

    @property
    def canvas(self) -> TemplateCanvas:
        return self._canvas

    @property
    def undo_manager(self) -> UndoRedoManager:
        return self._undo

    @property
    def template_list(self) -> TemplateListWidget:
        return self._template_list

    @property
    def properties_panel(self) -> PagePropertiesPanel:
        return self._properties_panel

    @property
    def current_template(self) -> Optional[Template]:
        return self._template

    @property
    def is_modified(self) -> bool:
        return self._is_modified

    # ========================
    # 初始化方法
    # ========================

    def _setup_window(self) -> None:
        self.setMinimumSize(WINDOW_MIN_WIDTH, WINDOW_MIN_HEIGHT)
        self.resize(1400, 900)
        self._center_window()

    def _center_window(self) -> None:
        screen = QApplication.primaryScreen()
        if screen:
            window_geometry = self.frameGeometry()
            window_geometry.moveCenter(screen.availableGeometry().center())
            self.move(window_geometry.topLeft())

    def _setup_actions(self) -> None:
        """创建菜单和工具栏共用的动作."""
        self._action_save = QAction("保存模板(&S)", self)
        self._action_save.setShortcut(QKeySequence.StandardKey.Save)
        self._action_save.triggered.connect(self.save)

        self._action_preview = QAction("预览(&P)...", self)
        self._action_preview.setShortcut(QKeySequence("Ctrl+P"))
        self._action_preview.triggered.connect(self._on_preview)

        self._action_undo = QAction("撤销(&U)", self)
        self._action_undo.setShortcut(QKeySequence.StandardKey.Undo)
        self._action_undo.triggered.connect(self._on_undo)

        self._action_redo = QAction("重做(&R)", self)
        self._action_redo.setShortcut(QKeySequence.StandardKey.Redo)
        self._action_redo.triggered.connect(self._on_redo)

        self._action_delete = QAction("删除元素(&D)", self)
        self._action_delete.triggered.connect(self._on_delete_selected)

        self._action_guides = QAction("显示边距参考线", self)
        self._action_guides.setCheckable(True)
        self._action_guides.setChecked(True)

        self._add_actions: dict[ElementType, QAction] = {}
        for element_type in (ElementType.TEXT, ElementType.PLACEHOLDER, ElementType.IMAGE, ElementType.SHAPE):
            action = QAction(f"添加{ELEMENT_TYPE_NAMES[element_type]}", self)
            action.triggered.connect(lambda _checked=False, t=element_type: self.add_element(t))
            self._add_actions[element_type] = action

    def _setup_menubar(self) -> None:
        menubar = self.menuBar()
        if not menubar:
            return

        file_menu = menubar.addMenu("文件(&F)")
        if file_menu:
            self._setup_file_menu(file_menu)

        edit_menu = menubar.addMenu("编辑(&E)")
        if edit_menu:
            edit_menu.addAction(self._action_undo)
            edit_menu.addAction(self._action_redo)
            edit_menu.addSeparator()
            edit_menu.addAction(self._action_delete)

        element_menu = menubar.addMenu("元素(&L)")
        if element_menu:
            for action in self._add_actions.values():
                element_menu.addAction(action)

        view_menu = menubar.addMenu("视图(&V)")
        if view_menu:
            view_menu.addAction(self._action_guides)

    def _setup_file_menu(self, menu: QMenu) -> None:
        action_new = QAction("新建模板(&N)", self)
        action_new.setShortcut(QKeySequence.StandardKey.New)
        action_new.triggered.connect(self._on_new_template)
        menu.addAction(action_new)

        menu.addSeparator()
        menu.addAction(self._action_save)
        menu.addAction(self._action_preview)
        menu.addSeparator()

        action_close = QAction("关闭(&C)", self)
        action_close.setShortcut(QKeySequence.StandardKey.Close)
        action_close.triggered.connect(self.close)
        menu.addAction(action_close)

    def _setup_toolbar(self) -> None:
        toolbar = QToolBar("编辑", self)
        toolbar.setMovable(False)
        for action in self._add_actions.values():
            toolbar.addAction(action)
        toolbar.addSeparator()
        toolbar.addAction(self._action_undo)
        toolbar.addAction(self._action_redo)
        toolbar.addAction(self._action_delete)
        toolbar.addSeparator()
        toolbar.addAction(self._action_save)
        toolbar.addAction(self._action_preview)
        self.addToolBar(toolbar)

    def _setup_central_widget(self) -> None:
        central_widget = QWidget()
        self.setCentralWidget(central_widget)
        main_layout = QVBoxLayout(central_widget)
        main_layout.setContentsMargins(0, 0, 0, 0)
        main_layout.setSpacing(0)

        # 主分割器（列表 | 画布 | 页面属性）
        self._main_splitter = QSplitter(Qt.Orientation.Horizontal)
        self._main_splitter.setHandleWidth(1)
        main_layout.addWidget(self._main_splitter)

        self._template_list = TemplateListWidget(self._manager)
        self._template_list.setMinimumWidth(200)
        self._template_list.setMaximumWidth(300)
        self._main_splitter.addWidget(self._template_list)

        self._canvas = TemplateCanvas(self._surface)
        self._main_splitter.addWidget(self._canvas)

        self._properties_panel = PagePropertiesPanel()
        self._properties_panel.setMinimumWidth(260)
        self._properties_panel.setMaximumWidth(360)
        self._main_splitter.addWidget(self._properties_panel)

        self._main_splitter.setStretchFactor(0, 0)
        self._main_splitter.setStretchFactor(1, 1)
        self._main_splitter.setStretchFactor(2, 0)
        self._main_splitter.setSizes([250, 850, 300])

    def _setup_statusbar(self) -> None:
        self._statusbar = QStatusBar()
        self.setStatusBar(self._statusbar)
        self._statusbar.showMessage("就绪")

    def _connect_signals(self) -> None:
        # 画布
        self._canvas.gesture_started.connect(self._on_gesture_started)
        self._canvas.gesture_finished.connect(self._on_gesture_finished)
        self._canvas.edit_finished.connect(self._on_edit_finished)
        self._canvas.delete_requested.connect(self.delete_element)
        self._canvas.replace_image_requested.connect(self._on_replace_image_requested)
        self._canvas.zoom_changed.connect(
            lambda level: self._statusbar.showMessage(f"缩放: {level:.0%}")
        )
        self._action_guides.toggled.connect(self._canvas.template_scene.set_show_guides)

        # 撤销栈
        self._undo.stack_changed.connect(self._update_undo_actions)

        # 页面属性
        self._properties_panel.properties_changed.connect(self._on_properties_changed)

        # 模板列表
        self._template_list.template_selected.connect(self.load_template)
        self._template_list.template_deleted.connect(self._on_template_deleted)

        # 上传
        self._uploads.upload_completed.connect(self._on_upload_completed)
        self._uploads.upload_failed.connect(self._on_upload_failed)

    def _bind_surface(self, surface: DesignSurface) -> None:
        surface.add_listener(self._on_surface_changed)
        self._properties_panel.set_properties(surface.properties)

    # ========================
    # 状态
    # ========================

    def _set_modified(self, modified: bool) -> None:
        if self._is_modified == modified:
            return
        self._is_modified = modified
        self._update_window_title()

    def _update_window_title(self) -> None:
        title = WINDOW_TITLE
        if self._template:
            title = f"{WINDOW_TITLE} - {self._template.name}"
        if self._is_modified:
            title += " *（未保存）"
        self.setWindowTitle(title)

    def _update_undo_actions(self) -> None:
        self._action_undo.setEnabled(self._undo.can_undo)
        self._action_redo.setEnabled(self._undo.can_redo)
        self._action_undo.setToolTip(f"撤销 {self._undo.undo_description}".strip())
        self._action_redo.setToolTip(f"重做 {self._undo.redo_description}".strip())

    def _on_surface_changed(self, change: SurfaceChange, element_id: Optional[str]) -> None:
        if change == SurfaceChange.RESET:
            return
        if change == SurfaceChange.PROPERTIES:
            self._properties_panel.set_properties(self._surface.properties)
        self._set_modified(True)

    # ========================
    # 模板管理
    # ========================

    def load_template(self, template_id: str) -> bool:
        """加载模板到画布.

        Returns:
            是否加载成功
        """
        if self._template is not None and self._template.id == template_id:
            return True
        if not self._confirm_discard():
            if self._template is not None:
                self._template_list.select_template(self._template.id)
            return False
        try:
            template = self._manager.load_template(template_id)
        except AppException as e:
            QMessageBox.critical(self, "加载失败", log_and_describe(e, "加载模板失败"))
            return False

        self._template = template
        self._surface.load_document(template.design_data)
        self._properties_panel.set_properties(self._surface.properties)
        self._undo.clear()
        self._is_modified = False
        self._update_window_title()
        self._canvas.fit_in_view()
        self._template_list.select_template(template.id)
        self._statusbar.showMessage(f"已加载模板: {template.name}")
        self.template_loaded.emit(template)
        return True

    def save(self) -> bool:
        """保存当前设计.

        失败时显示错误提示，画布内容保持不变。

        Returns:
            是否保存成功
        """
        if self._template is None:
            self._statusbar.showMessage("请先新建或选择模板")
            return False
        self._canvas.edit_overlay.finish_editing()
        try:
            template = self._manager.save_design(self._template.id, self._surface.to_document())
        except AppException as e:
            QMessageBox.critical(self, "保存失败", log_and_describe(e, "保存模板失败"))
            return False

        self._template = template
        self._set_modified(False)
        self._update_window_title()
        self._template_list.refresh()
        self._template_list.select_template(template.id)
        self._statusbar.showMessage(f"模板已保存: {template.name}")
        self.template_saved.emit(template)
        return True

    def _confirm_discard(self) -> bool:
        """有未保存修改时询问用户."""
        if not self._is_modified or self._template is None:
            return True
        reply = QMessageBox.question(
            self,
            "未保存的修改",
            f"模板 \"{self._template.name}\" 有未保存的修改，是否保存？",
            QMessageBox.StandardButton.Save
            | QMessageBox.StandardButton.Discard
            | QMessageBox.StandardButton.Cancel,
            QMessageBox.StandardButton.Save,
        )
        if reply == QMessageBox.StandardButton.Save:
            return self.save()
        return reply == QMessageBox.StandardButton.Discard

    def _on_new_template(self) -> None:
        name, ok = QInputDialog.getText(self, "新建模板", "请输入模板名称:", text="未命名证书")
        if ok and name:
            self._template_list.create_template(name)

    def _on_template_deleted(self, template_id: str) -> None:
        if self._template is not None and self._template.id == template_id:
            self._template = None
            self._surface.load_document(DesignDocument())
            self._undo.clear()
            self._is_modified = False
            self._update_window_title()

    # ========================
    # 元素操作
    # ========================

    def add_element(self, element_type: ElementType) -> str:
        """添加元素到最上层并选中.

        Returns:
            新元素 ID
        """
        style = NEW_SHAPE_STYLE if element_type == ElementType.SHAPE else None
        element = self._undo.add_element(
            element_type,
            NEW_ELEMENT_CONTENT[element_type],
            *NEW_ELEMENT_POSITION,
            style=style,
        )
        self._canvas.select_element(element.id)
        self._statusbar.showMessage(f"已添加{ELEMENT_TYPE_NAMES[element_type]}")
        return element.id

    def delete_element(self, element_id: str) -> None:
        """删除元素（可撤销）."""
        if element_id not in self._surface:
            return
        self._undo.delete_element(element_id)
        self._statusbar.showMessage("已删除元素")

    def _on_delete_selected(self) -> None:
        if self._surface.selected_id is not None:
            self.delete_element(self._surface.selected_id)

    def _on_undo(self) -> None:
        self._canvas.edit_overlay.finish_editing()
        self._undo.undo()

    def _on_redo(self) -> None:
        self._canvas.edit_overlay.finish_editing()
        self._undo.redo()

    def _on_properties_changed(self, properties: TemplateProperties) -> None:
        self._undo.set_properties(properties)

    # ========================
    # 手势与编辑
    # ========================

    def _on_gesture_started(self, element_id: str) -> None:
        self._undo.begin_change(element_id)

    def _on_gesture_finished(self, element_id: str) -> None:
        if element_id not in self._surface:
            return
        controller = self._surface.controller_for(element_id)
        # 编辑中的变更在编辑结束时统一记录
        if isinstance(controller, EditableElementController) and controller.is_editing:
            return
        self._undo.end_change(element_id)

    def _on_edit_finished(self, element_id: str) -> None:
        self._undo.end_change(element_id)

    # ========================
    # 图片替换
    # ========================

    def _on_replace_image_requested(self, element_id: str) -> None:
        file_path, _ = QFileDialog.getOpenFileName(
            self,
            "选择图片",
            "",
            "图片文件 (*.png *.jpg *.jpeg *.webp)",
        )
        if file_path:
            self.replace_image(element_id, file_path)

    def replace_image(self, element_id: str, file_path: str) -> Optional[str]:
        """替换图片：立即显示本地预览，后台上传后换成持久地址.

        Returns:
            本地预览地址
        """
        controller = self._surface.controller_for(element_id)
        if not isinstance(controller, ImageElementController):
            return None
        self._undo.begin_change(element_id)
        local_ref = controller.replace_image(file_path, self._storage)
        self._undo.end_change(element_id)
        self._uploads.start_upload(file_path, element_id, local_ref)
        self._statusbar.showMessage("正在上传图片...")
        return local_ref

    def _on_upload_completed(self, element_id: str, url: str, local_ref: str) -> None:
        if element_id not in self._surface:
            logger.info(f"元素已删除，忽略上传结果: {element_id}")
            return
        controller = self._surface.controller_for(element_id)
        if isinstance(controller, ImageElementController):
            if controller.apply_durable_url(url, local_ref) is not None:
                self._undo.rewrite_content(element_id, local_ref, url)
                self._statusbar.showMessage("图片上传完成")

    def _on_upload_failed(self, element_id: str, message: str) -> None:
        self._statusbar.showMessage("图片上传失败")
        QMessageBox.warning(self, "上传失败", message)

    # ========================
    # 预览
    # ========================

    def _on_preview(self) -> None:
        self._canvas.edit_overlay.finish_editing()
        dialog = PreviewDialog(self._surface.to_document(), self._renderer, parent=self)
        dialog.exec()

    # ========================
    # 事件处理
    # ========================

    def closeEvent(self, event: QCloseEvent) -> None:
        if not self._confirm_discard():
            event.ignore()
            return
        self._uploads.stop_all()
        event.accept()
