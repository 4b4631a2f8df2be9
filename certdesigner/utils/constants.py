"""应用常量定义."""

from pathlib import Path

# ===================
# 应用信息
# ===================
APP_NAME = "证书模板设计器"
APP_VERSION = "0.1.0"
APP_ORGANIZATION = "CertDesigner"

# ===================
# 路径常量
# ===================
# 应用数据目录
APP_DATA_DIR = Path.home() / ".certdesigner"

# 数据库文件路径
DATABASE_PATH = APP_DATA_DIR / "templates.db"

# 日志目录
LOG_DIR = APP_DATA_DIR / "logs"

# 图片存储目录（本地存储模式）
STORAGE_DIR = APP_DATA_DIR / "storage"

# ===================
# 页面与单位
# ===================
# 每单位对应的像素数（96 DPI）
UNIT_TO_PX = {
    "px": 1.0,
    "in": 96.0,
    "mm": 96.0 / 25.4,
}

# 预览渲染缩放比例
PREVIEW_SCALE = 1.0

# 默认页面（A4 纵向）
DEFAULT_PAGE_WIDTH = 210
DEFAULT_PAGE_HEIGHT = 297
DEFAULT_PAGE_UNIT = "mm"
DEFAULT_BACKGROUND_COLOR = "#ffffff"

# ===================
# 元素设置
# ===================
# 元素最小尺寸（缩放时下限）
MIN_ELEMENT_SIZE = 50

# 各类元素的默认尺寸 (width, height)
DEFAULT_ELEMENT_SIZES = {
    "text": (200, 40),
    "placeholder": (200, 40),
    "image": (200, 200),
    "shape": (100, 100),
}

# 占位符未设置内容时的显示文本
DEFAULT_PLACEHOLDER_TOKEN = "{{recipient.name}}"

# ===================
# 上传设置
# ===================
# 最大上传文件大小 (5MB)
UPLOAD_MAX_BYTES = 5 * 1024 * 1024

# 允许的图片格式（Pillow 格式名）
UPLOAD_ALLOWED_FORMATS = {"JPEG", "PNG", "WEBP"}

# 上传图片最大边长
UPLOAD_MAX_DIMENSION = 2000

# 上传图片压缩质量 (1-100)
UPLOAD_QUALITY = 80

# 默认存储桶
DEFAULT_STORAGE_BUCKET = "certificates"

# 网络请求超时（秒）
HTTP_TIMEOUT = 30

# ===================
# UI 设置
# ===================
WINDOW_MIN_WIDTH = 1024
WINDOW_MIN_HEIGHT = 768
