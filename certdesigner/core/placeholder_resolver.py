"""占位符解析模块.

将内容中的 ``{{path.to.field}}`` 标记替换为数据记录中的值。

解析规则:
    - 路径按 ``.`` 分段，每段去除首尾空白，从记录根开始逐级查找
    - 找到已定义且非空的值时替换为其字符串形式
    - 任何一段未定义，或在路径耗尽前遇到非映射值时保留原标记
    - 单遍替换，替换结果不会再次扫描
"""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Mapping, Optional

# 占位符标记
PLACEHOLDER_PATTERN = re.compile(r"\{\{(.*?)\}\}")

# 编辑占位符时允许输入的字符之外的部分
_DISALLOWED_TOKEN_CHARS = re.compile(r"[^a-zA-Z0-9_.]")

_MISSING = object()


def build_sample_data(today: Optional[date] = None) -> dict[str, Any]:
    """构建内置示例数据.

    Args:
        today: 证书日期，默认为当天

    Returns:
        示例数据记录
    """
    issued = today or date.today()
    return {
        "recipient": {
            "name": "John Doe",
            "email": "john@example.com",
            "company": "Acme Corp",
            "position": "Senior Developer",
        },
        "issuer": {
            "name": "Jane Smith",
            "title": "CEO",
            "signature": "//signature-placeholder.png",
        },
        "certificate": {
            "title": "Certificate of Achievement",
            "course": "Advanced Web Development",
            "date": issued.isoformat(),
            "id": "CERT-123-456-789",
        },
    }


def _lookup(data: Mapping[str, Any], path: str) -> Any:
    """按点分路径查找值，找不到返回 _MISSING."""
    value: Any = data
    for segment in path.split("."):
        if not isinstance(value, Mapping):
            return _MISSING
        value = value.get(segment.strip(), _MISSING)
        if value is _MISSING:
            return _MISSING
    return value


def _is_resolved(value: Any) -> bool:
    if value is _MISSING or value is None:
        return False
    if isinstance(value, Mapping):
        return False
    if isinstance(value, str) and value == "":
        return False
    return True


def resolve_placeholders(content: str, data: Mapping[str, Any]) -> str:
    """解析内容中的所有占位符.

    Args:
        content: 原始内容
        data: 数据记录

    Returns:
        替换后的内容，无法解析的标记保持原样

    Example:
        >>> resolve_placeholders("{{a.b}}", {"a": {"b": "X"}})
        'X'
        >>> resolve_placeholders("{{a.missing}}", {"a": {}})
        '{{a.missing}}'
    """
    if not content:
        return content

    def replace(match: re.Match[str]) -> str:
        value = _lookup(data, match.group(1).strip())
        if not _is_resolved(value):
            return match.group(0)
        return str(value)

    return PLACEHOLDER_PATTERN.sub(replace, content)


def extract_placeholder_paths(content: str) -> list[str]:
    """提取内容中的占位符路径（按出现顺序，规范化空白）."""
    return [
        ".".join(segment.strip() for segment in raw.strip().split("."))
        for raw in PLACEHOLDER_PATTERN.findall(content or "")
    ]


def missing_placeholders(content: str, data: Mapping[str, Any]) -> list[str]:
    """列出在数据记录中无法解析的占位符路径."""
    return [
        path
        for path in extract_placeholder_paths(content)
        if not _is_resolved(_lookup(data, path))
    ]


def strip_token(content: str) -> str:
    """去掉花括号，得到可编辑的路径文本."""
    return (content or "").replace("{", "").replace("}", "")


def wrap_token(path: str) -> str:
    """将路径包装为占位符标记."""
    return "{{" + path + "}}"


def sanitize_token_input(text: str) -> str:
    """过滤占位符输入，只保留字母、数字、下划线和点."""
    return _DISALLOWED_TOKEN_CHARS.sub("", text or "")
