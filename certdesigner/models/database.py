"""数据库 ORM 模型."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, JSON, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow() -> datetime:
    """当前 UTC 时间（不带时区，与 SQLite 读回的值一致）."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TemplateRecord(Base):
    """证书模板表.

    design_data 作为不透明的 JSON 文档整体读写。
    """

    __tablename__ = "templates"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, default="")
    design_data = Column(JSON, nullable=True)
    is_public = Column(Boolean, default=False)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return f"<TemplateRecord(id={self.id}, name={self.name})>"
