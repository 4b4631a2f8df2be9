"""模板预览对话框.

用绑定数据渲染当前设计，显示结果图片和无法解析的占位符。

Features:
    - 编辑 JSON 绑定数据（默认示例数据）
    - 未绑定占位符列表
    - 导出 PNG/PDF
"""

from __future__ import annotations

import json
from typing import Any, Optional

from PIL import Image
from PyQt6.QtCore import Qt
from PyQt6.QtGui import QImage, QPixmap
from PyQt6.QtWidgets import (
    QDialog,
    QFileDialog,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QListWidget,
    QMessageBox,
    QPlainTextEdit,
    QPushButton,
    QScrollArea,
    QSplitter,
    QVBoxLayout,
    QWidget,
)

from certdesigner.core.placeholder_resolver import build_sample_data
from certdesigner.models.template_config import DesignDocument
from certdesigner.services.template_renderer import TemplateRenderer, unbound_placeholders
from certdesigner.utils.logger import setup_logger

logger = setup_logger(__name__)


def pil_to_qimage(image: Image.Image) -> QImage:
    """PIL 图片转换为 QImage（复制数据）."""
    rgba = image.convert("RGBA")
    data = rgba.tobytes("raw", "RGBA")
    qimage = QImage(data, rgba.width, rgba.height, rgba.width * 4, QImage.Format.Format_RGBA8888)
    return qimage.copy()


def parse_binding_data(text: str) -> dict[str, Any]:
    """解析绑定数据 JSON.

    Raises:
        ValueError: 不是合法的 JSON 对象
    """
    data = json.loads(text or "{}")
    if not isinstance(data, dict):
        raise ValueError("绑定数据必须是 JSON 对象")
    return data


class PreviewDialog(QDialog):
    """模板预览对话框."""

    def __init__(
        self,
        document: DesignDocument,
        renderer: Optional[TemplateRenderer] = None,
        data: Optional[dict[str, Any]] = None,
        parent: Optional[QWidget] = None,
    ) -> None:
        """初始化.

        Args:
            document: 设计文档
            renderer: 渲染器
            data: 初始绑定数据，默认使用示例数据
            parent: 父组件
        """
        super().__init__(parent)
        self._document = document
        self._renderer = renderer or TemplateRenderer()
        self._data: dict[str, Any] = data if data is not None else build_sample_data()

        self.setWindowTitle("预览")
        self.resize(1100, 760)
        self._setup_ui()
        self.refresh()

    def _setup_ui(self) -> None:
        layout = QVBoxLayout(self)
        splitter = QSplitter(Qt.Orientation.Horizontal)

        # 预览图片
        self._image_label = QLabel()
        self._image_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        scroll = QScrollArea()
        scroll.setWidget(self._image_label)
        scroll.setWidgetResizable(True)
        splitter.addWidget(scroll)

        # 右侧面板
        side = QWidget()
        side_layout = QVBoxLayout(side)
        side_layout.setContentsMargins(4, 0, 0, 0)

        data_group = QGroupBox("绑定数据 (JSON)")
        data_layout = QVBoxLayout(data_group)
        self._data_edit = QPlainTextEdit()
        self._data_edit.setPlainText(json.dumps(self._data, ensure_ascii=False, indent=2))
        data_layout.addWidget(self._data_edit)
        self._error_label = QLabel()
        self._error_label.setStyleSheet("color: #ff4d4f;")
        self._error_label.setWordWrap(True)
        data_layout.addWidget(self._error_label)
        side_layout.addWidget(data_group, 2)

        missing_group = QGroupBox("未绑定的占位符")
        missing_layout = QVBoxLayout(missing_group)
        self._missing_list = QListWidget()
        missing_layout.addWidget(self._missing_list)
        side_layout.addWidget(missing_group, 1)

        btn_layout = QHBoxLayout()
        self._refresh_btn = QPushButton("刷新预览")
        self._refresh_btn.clicked.connect(self._on_refresh)
        btn_layout.addWidget(self._refresh_btn)
        self._export_btn = QPushButton("导出...")
        self._export_btn.clicked.connect(self._on_export)
        btn_layout.addWidget(self._export_btn)
        btn_layout.addStretch()
        close_btn = QPushButton("关闭")
        close_btn.clicked.connect(self.accept)
        btn_layout.addWidget(close_btn)
        side_layout.addLayout(btn_layout)

        splitter.addWidget(side)
        splitter.setStretchFactor(0, 3)
        splitter.setStretchFactor(1, 1)
        layout.addWidget(splitter)

    # ========================
    # 公共方法
    # ========================

    @property
    def data(self) -> dict[str, Any]:
        """当前绑定数据."""
        return self._data

    @property
    def missing_paths(self) -> list[str]:
        return [self._missing_list.item(i).text() for i in range(self._missing_list.count())]

    @property
    def preview_pixmap(self) -> Optional[QPixmap]:
        pixmap = self._image_label.pixmap()
        return None if pixmap is None or pixmap.isNull() else pixmap

    def set_data_text(self, text: str) -> bool:
        """设置绑定数据文本并刷新.

        Returns:
            数据是否有效
        """
        self._data_edit.setPlainText(text)
        return self._on_refresh()

    def refresh(self) -> None:
        """用当前数据重新渲染."""
        image = self._renderer.render(self._document, self._data)
        self._image_label.setPixmap(QPixmap.fromImage(pil_to_qimage(image)))

        self._missing_list.clear()
        for path in unbound_placeholders(self._document.elements, self._data):
            self._missing_list.addItem(path)

    # ========================
    # 槽函数
    # ========================

    def _on_refresh(self) -> bool:
        try:
            self._data = parse_binding_data(self._data_edit.toPlainText())
        except ValueError as e:
            self._error_label.setText(f"数据格式错误: {e}")
            return False
        self._error_label.clear()
        self.refresh()
        return True

    def _on_export(self) -> None:
        path, _ = QFileDialog.getSaveFileName(
            self,
            "导出证书",
            "certificate.png",
            "PNG 图片 (*.png);;PDF 文档 (*.pdf);;JPEG 图片 (*.jpg)",
        )
        if not path:
            return
        try:
            self._renderer.render_to_file(self._document, path, self._data)
        except (OSError, ValueError) as e:
            logger.error(f"导出失败: {e}")
            QMessageBox.warning(self, "导出失败", f"无法导出:\n{e}")
            return
        QMessageBox.information(self, "导出成功", f"已导出到:\n{path}")
