from __future__ import annotations

import datetime
from typing import Optional

from pydantic import BaseModel


class QuotaRecord(BaseModel):
    user_id: str
    calls_made_today: int = 0
    last_call_date: Optional[datetime.date] = None
    role: Optional[str] = None

    def effective_calls(self, today: datetime.date) -> int:
        if self.last_call_date != today:
            return 0
        return self.calls_made_today


class QuotaStatus(BaseModel):
    user_id: Optional[str] = None
    role: Optional[str] = None
    used: int = 0
    limit: Optional[int] = None
    remaining: Optional[int] = None
    available: bool = False
