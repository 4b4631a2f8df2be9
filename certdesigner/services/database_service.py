"""数据库服务模块."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

from certdesigner.models.database import Base
from certdesigner.utils.logger import setup_logger

logger = setup_logger(__name__)


class DatabaseService:
    """数据库服务.

    管理模板存储的数据库连接和会话。

    Attributes:
        url: 数据库地址
        engine: SQLAlchemy 引擎
    """

    def __init__(self, url: str) -> None:
        """初始化数据库服务.

        Args:
            url: SQLAlchemy 数据库地址，例如 ``sqlite:///templates.db``
        """
        self.url = url
        self._ensure_directory()

        connect_args = {}
        if url.startswith("sqlite"):
            connect_args["check_same_thread"] = False

        self.engine = create_engine(url, connect_args=connect_args, echo=False)
        self.SessionLocal = sessionmaker(
            bind=self.engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )
        logger.debug(f"数据库服务初始化完成: {self.engine.url.render_as_string(hide_password=True)}")

    def _ensure_directory(self) -> None:
        """SQLite 文件数据库确保目录存在."""
        parsed = make_url(self.url)
        if parsed.get_backend_name() == "sqlite" and parsed.database not in (None, "", ":memory:"):
            Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)

    def init_db(self) -> None:
        """创建所有表结构."""
        Base.metadata.create_all(self.engine)
        logger.info("数据库表初始化完成")

    def get_session(self) -> Session:
        """获取数据库会话."""
        return self.SessionLocal()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """事务会话：成功提交，异常回滚."""
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def close(self) -> None:
        """关闭数据库连接."""
        self.engine.dispose()
        logger.debug("数据库连接已关闭")

    def __enter__(self) -> "DatabaseService":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


_db_service: Optional[DatabaseService] = None


def get_database_service(url: Optional[str] = None) -> DatabaseService:
    """获取全局数据库服务（首次调用时创建并建表）."""
    global _db_service
    if _db_service is None:
        if url is None:
            from certdesigner.models.app_settings import get_settings

            url = get_settings().db_url
        _db_service = DatabaseService(url)
        _db_service.init_db()
    return _db_service


def reset_database_service() -> None:
    """关闭并重置全局数据库服务（主要用于测试）."""
    global _db_service
    if _db_service is not None:
        _db_service.close()
    _db_service = None
