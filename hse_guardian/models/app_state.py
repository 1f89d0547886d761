# hse_guardian/models/app_state.py
"""
Key/value snapshot table — one JSON document per fixed key
(cameras, detection log, safety score). Overwritten on every save.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, Text
from hse_guardian.database import Base


class AppState(Base):
    __tablename__ = "app_state"

    key = Column(String(64), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    def __repr__(self):
        return f"<AppState {self.key} updated={self.updated_at}>"
