"""错误处理工具模块.

将异常转换为可展示给用户的消息。持久化失败时编辑器通过这里获取提示文本，
内存中的编辑状态保持不变，用户可以重试。
"""

from __future__ import annotations

from typing import Any

from certdesigner.utils.exceptions import (
    AppException,
    ConfigError,
    ImageValidationError,
    PersistenceError,
    StorageError,
    TemplateLoadError,
    TemplateNotFoundError,
    TemplateSaveError,
    UploadError,
)
from certdesigner.utils.logger import setup_logger

logger = setup_logger(__name__)


# 错误消息映射（子类在前，按顺序匹配）
ERROR_MESSAGES = {
    TemplateNotFoundError: "模板不存在或您没有访问权限",
    TemplateSaveError: "模板保存失败，您的修改仍保留在编辑器中，请稍后重试",
    TemplateLoadError: "模板加载失败，请稍后重试",
    PersistenceError: "模板存储服务异常，请稍后重试",
    UploadError: "图片上传失败，请检查网络连接后重试",
    StorageError: "图片存储服务异常",
    ConfigError: "配置错误，请检查配置文件",
}


def get_user_friendly_message(exception: Exception) -> str:
    """获取用户友好的错误消息.

    图片校验错误直接展示具体原因，其余已知异常使用映射表中的提示。

    Args:
        exception: 异常对象

    Returns:
        用户友好的错误消息
    """
    if isinstance(exception, ImageValidationError):
        return exception.message

    for exc_type, message in ERROR_MESSAGES.items():
        if isinstance(exception, exc_type):
            return message

    if isinstance(exception, AppException):
        return exception.message

    return "操作失败，请稍后重试"


def get_error_details(exception: Exception) -> dict[str, Any]:
    """获取错误详细信息.

    Args:
        exception: 异常对象

    Returns:
        包含错误详情的字典
    """
    details: dict[str, Any] = {
        "type": type(exception).__name__,
        "message": str(exception),
        "user_message": get_user_friendly_message(exception),
    }
    if isinstance(exception, AppException):
        details["code"] = exception.code
    if isinstance(exception, UploadError) and exception.status_code:
        details["status_code"] = exception.status_code
    return details


def log_and_describe(exception: Exception, context: str = "") -> str:
    """记录异常并返回用户提示.

    Args:
        exception: 异常对象
        context: 上下文描述

    Returns:
        用户友好的错误消息
    """
    prefix = f"{context}: " if context else ""
    if isinstance(exception, AppException):
        logger.error(f"{prefix}{exception}")
    else:
        logger.exception(f"{prefix}未预期的异常: {exception}")
    return get_user_friendly_message(exception)
