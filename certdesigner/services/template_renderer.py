"""模板预览渲染.

将设计文档按页面布局渲染为图片：占位符用数据解析后按列表顺序绘制元素。

Features:
    - 页面尺寸、方向、外边距、内边距与编辑画布共用同一布局计算
    - 文字/占位符、形状、图片元素绘制
    - 单个元素渲染失败时记录日志并跳过
    - 导出 PNG/JPEG/PDF
"""

from __future__ import annotations

import io
import math
import os
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx
from PIL import Image, ImageColor, ImageDraw, ImageFont

from certdesigner.core.page_layout import PageLayout, compute_layout
from certdesigner.core.placeholder_resolver import (
    build_sample_data,
    missing_placeholders,
    resolve_placeholders,
)
from certdesigner.models.template_config import (
    BackgroundType,
    DesignDocument,
    Element,
    ElementType,
    Position,
    parse_px,
)
from certdesigner.utils.constants import HTTP_TIMEOUT, PREVIEW_SCALE
from certdesigner.utils.logger import setup_logger

logger = setup_logger(__name__)


# ===================
# 常量定义
# ===================

DEFAULT_FONT_SIZE = 16
DEFAULT_TEXT_COLOR = "#000000"
DEFAULT_SHAPE_COLOR = "#e5e7eb"

# 字体搜索路径
FONT_SEARCH_PATHS = [
    "/System/Library/Fonts/",
    "/System/Library/Fonts/Supplemental/",
    "/Library/Fonts/",
    "~/Library/Fonts/",
    "C:/Windows/Fonts/",
    "/usr/share/fonts/",
    "/usr/share/fonts/truetype/",
    "/usr/share/fonts/truetype/dejavu/",
]

# 中文字体回退列表
CHINESE_FONT_FALLBACKS = [
    "PingFang SC.ttc",
    "PingFang.ttc",
    "Hiragino Sans GB.ttc",
    "msyh.ttc",
    "simsun.ttc",
    "wqy-microhei.ttc",
    "NotoSansCJK-Regular.ttc",
    "NotoSansSC-Regular.otf",
]

# 支持的导出格式
EXPORT_FORMATS = {".png": "PNG", ".jpg": "JPEG", ".jpeg": "JPEG", ".pdf": "PDF"}


# ===================
# 字体管理
# ===================


def _has_chinese_characters(text: str) -> bool:
    return any("\u4e00" <= char <= "\u9fff" or "\u3400" <= char <= "\u4dbf" for char in text)


def _search_font_files(names: Iterable[str], font_size: int) -> Optional[ImageFont.FreeTypeFont]:
    """在常用字体目录中查找字体文件."""
    names = list(names)
    for search_path in FONT_SEARCH_PATHS:
        expanded_path = os.path.expanduser(search_path)
        if not os.path.isdir(expanded_path):
            continue
        for name in names:
            font_path = os.path.join(expanded_path, name)
            if os.path.exists(font_path):
                try:
                    return ImageFont.truetype(font_path, font_size)
                except OSError:
                    continue
    return None


def find_font(
    font_family: Optional[str],
    font_size: int,
    bold: bool = False,
    italic: bool = False,
    text_content: Optional[str] = None,
) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """查找字体.

    依次尝试：指定字体名、常用目录下的字体文件及粗体/斜体变体、
    中文字体回退（文本含中文时）、默认字体。

    Args:
        font_family: 字体名称（CSS font-family 的第一个候选）
        font_size: 字体大小
        bold: 是否粗体
        italic: 是否斜体
        text_content: 要渲染的文本（用于检测是否需要中文字体）

    Returns:
        字体对象
    """
    needs_chinese = bool(text_content) and _has_chinese_characters(text_content)

    if font_family:
        family = font_family.split(",")[0].strip().strip("'\"")
        try:
            return ImageFont.truetype(family, font_size)
        except OSError:
            pass

        variants = [family, f"{family}.ttf", f"{family}.otf", f"{family}.ttc"]
        if bold and italic:
            variants.append(f"{family}-BoldItalic.ttf")
        elif bold:
            variants.append(f"{family}-Bold.ttf")
        elif italic:
            variants.append(f"{family}-Italic.ttf")

        font = _search_font_files(variants, font_size)
        if font is not None:
            return font
        logger.warning(f"字体 '{family}' 未找到，使用默认字体")

    if needs_chinese:
        font = _search_font_files(CHINESE_FONT_FALLBACKS, font_size)
        if font is not None:
            return font

    font = _search_font_files(["DejaVuSans.ttf", "Arial.ttf", "arial.ttf"], font_size)
    if font is not None:
        return font
    return ImageFont.load_default(font_size)


# ===================
# 辅助函数
# ===================


def parse_color(value: Optional[str], default: str) -> tuple[int, int, int, int]:
    """解析 CSS 颜色，无法解析时使用默认颜色."""
    if value:
        try:
            return ImageColor.getcolor(value.strip(), "RGBA")
        except ValueError:
            logger.warning(f"无法解析颜色: {value}")
    return ImageColor.getcolor(default, "RGBA")


def element_origin(layout: PageLayout, position: Position) -> tuple[float, float]:
    """元素位置（内容区百分比）换算为页面像素坐标."""
    return layout.to_pixels(position)


def resolve_elements(
    elements: Iterable[Element],
    data: Optional[Mapping[str, Any]] = None,
) -> list[Element]:
    """解析占位符元素内容，返回副本.

    Args:
        elements: 元素列表
        data: 绑定数据，默认使用示例数据

    Returns:
        解析后的元素列表（顺序不变）
    """
    bound = build_sample_data() if data is None else data
    resolved = []
    for element in elements:
        if element.type == ElementType.PLACEHOLDER:
            content = resolve_placeholders(element.content, bound)
            resolved.append(element.model_copy(update={"content": content}))
        else:
            resolved.append(element.model_copy())
    return resolved


def unbound_placeholders(
    elements: Iterable[Element],
    data: Optional[Mapping[str, Any]] = None,
) -> list[str]:
    """列出数据中无法解析的占位符路径（去重，保持出现顺序）."""
    bound = build_sample_data() if data is None else data
    paths: list[str] = []
    for element in elements:
        if element.type != ElementType.PLACEHOLDER:
            continue
        for path in missing_placeholders(element.content, bound):
            if path not in paths:
                paths.append(path)
    return paths


def load_image_reference(reference: str, timeout: float = HTTP_TIMEOUT) -> Image.Image:
    """加载图片引用（本地路径、file:// 或 http(s) 地址）.

    Raises:
        OSError: 文件无法读取
        httpx.HTTPError: 下载失败
    """
    parsed = urlparse(reference)
    if parsed.scheme in ("http", "https"):
        response = httpx.get(reference, timeout=timeout, follow_redirects=True)
        response.raise_for_status()
        source: Any = io.BytesIO(response.content)
    elif parsed.scheme == "file":
        source = url2pathname(parsed.path)
    else:
        source = reference

    with Image.open(source) as img:
        img.load()
        return img.convert("RGBA")


def fit_cover(image: Image.Image, target_size: tuple[int, int]) -> Image.Image:
    """填满目标区域（居中裁剪）."""
    target_w, target_h = max(1, target_size[0]), max(1, target_size[1])
    img_ratio = image.width / image.height
    target_ratio = target_w / target_h

    if img_ratio > target_ratio:
        new_h = target_h
        new_w = max(1, int(new_h * img_ratio))
    else:
        new_w = target_w
        new_h = max(1, int(new_w / img_ratio))

    resized = image.resize((new_w, new_h), Image.Resampling.LANCZOS)
    x = (new_w - target_w) // 2
    y = (new_h - target_h) // 2
    return resized.crop((x, y, x + target_w, y + target_h))


# ===================
# 模板渲染器
# ===================


class TemplateRenderer:
    """模板渲染器.

    Example:
        >>> renderer = TemplateRenderer()
        >>> image = renderer.render(surface.to_document(), {"recipient": {"name": "张三"}})
        >>> renderer.render_to_file(document, "certificate.pdf")
    """

    def __init__(self, scale: float = PREVIEW_SCALE, http_timeout: float = HTTP_TIMEOUT) -> None:
        """初始化渲染器.

        Args:
            scale: 默认缩放比例
            http_timeout: 远程图片下载超时
        """
        self._scale = scale
        self._http_timeout = http_timeout

    @property
    def scale(self) -> float:
        return self._scale

    def layout_for(self, document: DesignDocument, scale: Optional[float] = None) -> PageLayout:
        """计算文档在指定缩放下的布局."""
        return compute_layout(document.properties, self._scale if scale is None else scale)

    def render(
        self,
        document: DesignDocument,
        data: Optional[Mapping[str, Any]] = None,
        scale: Optional[float] = None,
    ) -> Image.Image:
        """渲染设计文档.

        Args:
            document: 设计文档
            data: 绑定数据，默认使用示例数据
            scale: 缩放比例，默认使用渲染器设置

        Returns:
            RGBA 图片
        """
        layout = self.layout_for(document, scale)
        size = (max(1, math.ceil(layout.page.width)), max(1, math.ceil(layout.page.height)))
        result = self._render_background(document, size)

        logger.debug(f"渲染模板: 页面尺寸={size}, 缩放={layout.scale}, 元素数={len(document.elements)}")

        for element in resolve_elements(document.elements, data):
            try:
                result = self._render_element(result, element, layout)
            except Exception as e:
                logger.error(f"渲染元素失败: {element.id}, 错误: {e}")

        return result

    def render_to_file(
        self,
        document: DesignDocument,
        output_path: str | Path,
        data: Optional[Mapping[str, Any]] = None,
        scale: Optional[float] = None,
    ) -> Path:
        """渲染并保存到文件（按扩展名选择 PNG/JPEG/PDF）.

        Raises:
            ValueError: 不支持的扩展名
        """
        path = Path(output_path)
        image_format = EXPORT_FORMATS.get(path.suffix.lower())
        if image_format is None:
            raise ValueError(f"不支持的导出格式: {path.suffix}")

        image = self.render(document, data, scale)
        path.parent.mkdir(parents=True, exist_ok=True)
        if image_format == "PNG":
            image.save(path, format="PNG")
        else:
            background = Image.new("RGB", image.size, (255, 255, 255))
            background.paste(image, mask=image.split()[3])
            extra = {"resolution": 96.0 * (self._scale if scale is None else scale)} if image_format == "PDF" else {"quality": 95}
            background.save(path, format=image_format, **extra)

        logger.info(f"已导出: {path}")
        return path

    # ========================
    # 背景
    # ========================

    def _render_background(self, document: DesignDocument, size: tuple[int, int]) -> Image.Image:
        background = document.properties.background
        if background.type == BackgroundType.IMAGE:
            canvas = Image.new("RGBA", size, (255, 255, 255, 255))
            if background.value:
                try:
                    overlay = fit_cover(load_image_reference(background.value, self._http_timeout), size)
                    canvas = Image.alpha_composite(canvas, overlay)
                except Exception as e:
                    logger.warning(f"背景图片加载失败: {e}")
            return canvas
        return Image.new("RGBA", size, parse_color(background.value, "#ffffff"))

    # ========================
    # 元素
    # ========================

    def _render_element(self, image: Image.Image, element: Element, layout: PageLayout) -> Image.Image:
        if element.type in (ElementType.TEXT, ElementType.PLACEHOLDER):
            return self._render_text(image, element, layout)
        if element.type == ElementType.SHAPE:
            return self._render_shape(image, element, layout)
        if element.type == ElementType.IMAGE:
            return self._render_image(image, element, layout)
        return image

    def _element_box(self, element: Element, layout: PageLayout) -> tuple[int, int, int, int]:
        """元素像素区域 (x, y, width, height)."""
        x, y = element_origin(layout, element.position)
        width, height = element.size
        return (
            int(round(x)),
            int(round(y)),
            max(1, int(round(width * layout.scale))),
            max(1, int(round(height * layout.scale))),
        )

    def _render_text(self, image: Image.Image, element: Element, layout: PageLayout) -> Image.Image:
        """绘制文字和占位符元素."""
        if not element.content:
            return image

        style = element.style
        x, y, width, _ = self._element_box(element, layout)
        font_size = parse_px(style.get("font-size")) or DEFAULT_FONT_SIZE
        scaled_font_size = max(1, int(round(font_size * layout.scale)))
        font = find_font(
            style.get("font-family"),
            scaled_font_size,
            bold=style.get("font-weight", "") in ("bold", "700", "800", "900"),
            italic=style.get("font-style") == "italic",
            text_content=element.content,
        )

        temp = Image.new("RGBA", image.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(temp)
        color = parse_color(style.get("color"), DEFAULT_TEXT_COLOR)
        align = style.get("text-align", "left")
        line_height = int(scaled_font_size * 1.2)

        current_y = y
        for line in element.content.split("\n"):
            if line:
                bbox = draw.textbbox((0, 0), line, font=font)
                line_width = bbox[2] - bbox[0]
                if align == "center":
                    line_x = x + (width - line_width) // 2
                elif align == "right":
                    line_x = x + width - line_width
                else:
                    line_x = x
                draw.text((line_x, current_y), line, font=font, fill=color)
            current_y += line_height

        return Image.alpha_composite(image, temp)

    def _render_shape(self, image: Image.Image, element: Element, layout: PageLayout) -> Image.Image:
        """绘制矩形形状."""
        style = element.style
        x, y, width, height = self._element_box(element, layout)
        fill = parse_color(style.get("background-color"), DEFAULT_SHAPE_COLOR)
        border_width = int(round((parse_px(style.get("border-width")) or 0) * layout.scale))
        outline = parse_color(style.get("border-color"), "#000000") if border_width or style.get("border-color") else None
        if outline is not None and border_width == 0:
            border_width = 1
        radius = int(round((parse_px(style.get("border-radius")) or 0) * layout.scale))

        temp = Image.new("RGBA", image.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(temp)
        box = (x, y, x + width - 1, y + height - 1)
        if radius > 0:
            draw.rounded_rectangle(box, radius=radius, fill=fill, outline=outline, width=border_width)
        else:
            draw.rectangle(box, fill=fill, outline=outline, width=border_width)
        return Image.alpha_composite(image, temp)

    def _render_image(self, image: Image.Image, element: Element, layout: PageLayout) -> Image.Image:
        """绘制图片元素（无内容时跳过）."""
        if not element.content:
            return image

        x, y, width, height = self._element_box(element, layout)
        overlay = fit_cover(load_image_reference(element.content, self._http_timeout), (width, height))
        temp = Image.new("RGBA", image.size, (0, 0, 0, 0))
        temp.paste(overlay, (x, y), overlay)
        return Image.alpha_composite(image, temp)


# ===================
# 便捷函数
# ===================


def render_document(
    document: DesignDocument,
    data: Optional[Mapping[str, Any]] = None,
    scale: float = PREVIEW_SCALE,
) -> Image.Image:
    """渲染设计文档（便捷函数）."""
    return TemplateRenderer(scale=scale).render(document, data)
