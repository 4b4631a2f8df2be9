"""页面属性面板组件.

编辑模板页面属性：尺寸、方向、背景、外边距和内边距。
任何修改都会发出包含完整属性的信号。
"""

from __future__ import annotations

from typing import Optional

from PyQt6.QtCore import pyqtSignal
from PyQt6.QtGui import QColor
from PyQt6.QtWidgets import (
    QColorDialog,
    QComboBox,
    QDoubleSpinBox,
    QFileDialog,
    QGridLayout,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from certdesigner.models.template_config import (
    Background,
    BackgroundType,
    BoxSpacing,
    Orientation,
    PageSize,
    TemplateProperties,
    Unit,
)

# 单位显示名称
UNIT_NAMES = {Unit.MM: "毫米", Unit.IN: "英寸", Unit.PX: "像素"}

# 方向显示名称
ORIENTATION_NAMES = {Orientation.PORTRAIT: "纵向", Orientation.LANDSCAPE: "横向"}

# 四边顺序
SIDES = ("top", "right", "bottom", "left")
SIDE_NAMES = {"top": "上", "right": "右", "bottom": "下", "left": "左"}


class ColorButton(QPushButton):
    """颜色选择按钮（#rrggbb）."""

    color_changed = pyqtSignal(str)

    def __init__(self, color: str = "#ffffff", parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._color = color
        self.setFixedSize(80, 24)
        self._update_style()
        self.clicked.connect(self._pick_color)

    @property
    def color(self) -> str:
        return self._color

    def set_color(self, color: str) -> None:
        self._color = color
        self._update_style()

    def _update_style(self) -> None:
        qcolor = QColor(self._color)
        if not qcolor.isValid():
            qcolor = QColor(255, 255, 255)
        brightness = (qcolor.red() * 299 + qcolor.green() * 587 + qcolor.blue() * 114) / 1000
        text_color = "#000" if brightness > 128 else "#fff"
        self.setStyleSheet(
            f"QPushButton {{ background-color: {qcolor.name()}; "
            f"color: {text_color}; border: 1px solid #ccc; }}"
        )
        self.setText(qcolor.name())

    def _pick_color(self) -> None:
        color = QColorDialog.getColor(QColor(self._color), self, "选择颜色")
        if color.isValid():
            self._color = color.name()
            self._update_style()
            self.color_changed.emit(self._color)


class SpacingEditor(QGroupBox):
    """四边间距编辑器."""

    value_changed = pyqtSignal()

    def __init__(self, title: str, parent: Optional[QWidget] = None) -> None:
        super().__init__(title, parent)
        layout = QGridLayout(self)
        layout.setSpacing(4)
        self._spins: dict[str, QDoubleSpinBox] = {}
        for i, side in enumerate(SIDES):
            spin = QDoubleSpinBox()
            spin.setRange(0, 1000)
            spin.setDecimals(1)
            spin.valueChanged.connect(lambda _v: self.value_changed.emit())
            layout.addWidget(QLabel(f"{SIDE_NAMES[side]}:"), i // 2, (i % 2) * 2)
            layout.addWidget(spin, i // 2, (i % 2) * 2 + 1)
            self._spins[side] = spin

    def set_spacing(self, spacing: BoxSpacing) -> None:
        for side, spin in self._spins.items():
            spin.blockSignals(True)
            spin.setValue(getattr(spacing, side))
            spin.blockSignals(False)

    def spacing(self, unit: Unit) -> BoxSpacing:
        return BoxSpacing(unit=unit, **{side: spin.value() for side, spin in self._spins.items()})


class PagePropertiesPanel(QWidget):
    """页面属性面板.

    Signals:
        properties_changed: 属性变更 (TemplateProperties)
    """

    properties_changed = pyqtSignal(object)

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._updating = False
        self._setup_ui()
        self.set_properties(TemplateProperties())

    def _setup_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setContentsMargins(4, 4, 4, 4)
        layout.setSpacing(8)

        # 页面尺寸
        size_group = QGroupBox("页面尺寸")
        size_layout = QGridLayout(size_group)
        size_layout.setSpacing(4)

        size_layout.addWidget(QLabel("宽度:"), 0, 0)
        self._width = QDoubleSpinBox()
        self._width.setRange(1, 10000)
        self._width.setDecimals(1)
        size_layout.addWidget(self._width, 0, 1)

        size_layout.addWidget(QLabel("高度:"), 1, 0)
        self._height = QDoubleSpinBox()
        self._height.setRange(1, 10000)
        self._height.setDecimals(1)
        size_layout.addWidget(self._height, 1, 1)

        size_layout.addWidget(QLabel("单位:"), 2, 0)
        self._unit = QComboBox()
        for unit, name in UNIT_NAMES.items():
            self._unit.addItem(name, unit)
        size_layout.addWidget(self._unit, 2, 1)

        size_layout.addWidget(QLabel("方向:"), 3, 0)
        self._orientation = QComboBox()
        for orientation, name in ORIENTATION_NAMES.items():
            self._orientation.addItem(name, orientation)
        size_layout.addWidget(self._orientation, 3, 1)

        layout.addWidget(size_group)

        # 背景
        bg_group = QGroupBox("背景")
        bg_layout = QGridLayout(bg_group)
        bg_layout.addWidget(QLabel("颜色:"), 0, 0)
        self._bg_color = ColorButton()
        bg_layout.addWidget(self._bg_color, 0, 1)

        bg_layout.addWidget(QLabel("图片:"), 1, 0)
        image_row = QHBoxLayout()
        self._bg_image = QLineEdit()
        self._bg_image.setPlaceholderText("留空使用背景颜色")
        image_row.addWidget(self._bg_image)
        browse = QPushButton("...")
        browse.setFixedWidth(28)
        browse.clicked.connect(self._browse_background)
        image_row.addWidget(browse)
        bg_layout.addLayout(image_row, 1, 1)
        layout.addWidget(bg_group)

        # 边距
        self._margins = SpacingEditor("外边距")
        layout.addWidget(self._margins)
        self._padding = SpacingEditor("内边距")
        layout.addWidget(self._padding)

        layout.addStretch()

        self._width.valueChanged.connect(self._emit_change)
        self._height.valueChanged.connect(self._emit_change)
        self._unit.currentIndexChanged.connect(self._emit_change)
        self._orientation.currentIndexChanged.connect(self._emit_change)
        self._bg_color.color_changed.connect(self._emit_change)
        self._bg_image.editingFinished.connect(self._emit_change)
        self._margins.value_changed.connect(self._emit_change)
        self._padding.value_changed.connect(self._emit_change)

    def set_properties(self, properties: TemplateProperties) -> None:
        """显示页面属性（不发出信号）."""
        self._updating = True
        try:
            self._width.setValue(properties.size.width)
            self._height.setValue(properties.size.height)
            self._unit.setCurrentIndex(self._unit.findData(properties.size.unit))
            self._orientation.setCurrentIndex(self._orientation.findData(properties.orientation))
            if properties.background.type == BackgroundType.IMAGE:
                self._bg_image.setText(properties.background.value)
            else:
                self._bg_image.clear()
                self._bg_color.set_color(properties.background.value)
            self._margins.set_spacing(properties.margins)
            self._padding.set_spacing(properties.padding)
        finally:
            self._updating = False

    def properties(self) -> TemplateProperties:
        """当前面板中的页面属性."""
        unit = self._unit.currentData()
        image = self._bg_image.text().strip()
        background = (
            Background(type=BackgroundType.IMAGE, value=image)
            if image
            else Background(type=BackgroundType.COLOR, value=self._bg_color.color)
        )
        return TemplateProperties(
            size=PageSize(width=self._width.value(), height=self._height.value(), unit=unit),
            orientation=self._orientation.currentData(),
            background=background,
            margins=self._margins.spacing(unit),
            padding=self._padding.spacing(unit),
        )

    def _emit_change(self, *_args) -> None:
        if not self._updating:
            self.properties_changed.emit(self.properties())

    def _browse_background(self) -> None:
        path, _ = QFileDialog.getOpenFileName(
            self,
            "选择背景图片",
            "",
            "图片文件 (*.png *.jpg *.jpeg *.webp)",
        )
        if path:
            self._bg_image.setText(path)
            self._emit_change()
