from datetime import datetime, timezone

from sqlalchemy import DateTime, TypeDecorator
from sqlalchemy.orm import (
    DeclarativeBase
)


class UTCDateTime(TypeDecorator):
    """
    timezone付きDateTime

    SQLiteなどtimezoneを保持しないDBから読み込んだnaiveな値にUTCを付与する。
    """
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# 1. 全てのモデルが継承するためのBaseクラスを定義
class Base(DeclarativeBase):
    pass
