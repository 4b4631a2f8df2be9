"""数据库模型单元测试."""

import warnings
from datetime import datetime, timedelta, timezone

from certdesigner.models.database import TemplateRecord, _utcnow


class TestTimestamps:
    """时间戳测试类."""

    def test_utcnow_naive_utc(self):
        """测试时间戳为不带时区的 UTC 时间，且不触发弃用警告."""
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            value = _utcnow()
        assert value.tzinfo is None
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        assert abs(now - value) < timedelta(seconds=5)

    def test_record_timestamps_assigned(self, db_service):
        """测试写入时由存储端分配创建和更新时间."""
        with db_service.session_scope() as session:
            record = TemplateRecord(id="t1", user_id="user-1", name="A", design_data=None)
            session.add(record)
            session.flush()
            assert record.created_at is not None
            assert record.updated_at is not None
