"""证书模板设计器."""

__version__ = "0.1.0"
