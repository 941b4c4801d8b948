# backend/assetsync/db/models.py

import datetime

from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    Integer,
    String,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

Base = declarative_base()

JSONPayload = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class AssetDataCache(Base):
    __tablename__ = "asset_data_cache"

    # Plain symbols, or prefixed keys for auxiliary caches (e.g. "grades_history:AAPL").
    symbol = Column(String, primary_key=True)
    data = Column(JSONPayload, nullable=False)
    last_updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AssetDataCache(symbol='{self.symbol}', last_updated_at='{self.last_updated_at}')>"


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String, primary_key=True)
    role = Column(String, default="basico", nullable=False)
    api_calls_made = Column(Integer, default=0, nullable=False)
    last_api_call_date = Column(Date)

    def __repr__(self):
        return f"<Profile(id='{self.id}', role='{self.role}', api_calls_made={self.api_calls_made})>"
