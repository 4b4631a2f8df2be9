"""自定义异常类."""

from __future__ import annotations


class AppException(Exception):
    """应用基础异常类.

    所有自定义异常都应继承此类。

    Attributes:
        message: 错误消息
        code: 错误代码
    """

    def __init__(self, message: str, code: str = "UNKNOWN") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)

    def __str__(self) -> str:
        """返回异常字符串表示."""
        return f"[{self.code}] {self.message}"


# ===================
# 配置相关异常
# ===================
class ConfigError(AppException):
    """配置错误异常."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "CONFIG_ERROR")


# ===================
# 模板持久化相关异常
# ===================
class PersistenceError(AppException):
    """模板持久化错误异常."""

    def __init__(self, message: str, code: str = "PERSISTENCE_ERROR") -> None:
        super().__init__(message, code)


class TemplateNotFoundError(PersistenceError):
    """模板未找到异常."""

    def __init__(self, template_id: str) -> None:
        self.template_id = template_id
        super().__init__(f"模板不存在或无权访问: {template_id}", "TEMPLATE_NOT_FOUND")


class TemplateSaveError(PersistenceError):
    """模板保存失败异常."""

    def __init__(self, template_id: str, reason: str = "") -> None:
        self.template_id = template_id
        msg = f"模板保存失败: {template_id}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg, "TEMPLATE_SAVE_ERROR")


class TemplateLoadError(PersistenceError):
    """模板加载失败异常."""

    def __init__(self, template_id: str, reason: str = "") -> None:
        self.template_id = template_id
        msg = f"模板加载失败: {template_id}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg, "TEMPLATE_LOAD_ERROR")


# ===================
# 画布元素相关异常
# ===================
class ElementNotFoundError(AppException):
    """元素未找到异常."""

    def __init__(self, element_id: str) -> None:
        self.element_id = element_id
        super().__init__(f"元素不存在: {element_id}", "ELEMENT_NOT_FOUND")


# ===================
# 图片存储相关异常
# ===================
class StorageError(AppException):
    """图片存储错误异常."""

    def __init__(self, message: str, code: str = "STORAGE_ERROR") -> None:
        super().__init__(message, code)


class ImageValidationError(StorageError):
    """上传图片校验失败异常."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"图片校验失败: {reason}", "IMAGE_VALIDATION_ERROR")


class UploadError(StorageError):
    """上传失败异常."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        msg = message
        if status_code:
            msg = f"上传失败 (HTTP {status_code}): {message}"
        super().__init__(msg, "UPLOAD_ERROR")
