"""
Rate-limit window model.

One row per limited key (e.g. "login:10.0.0.1"). The row is
a shared counter across every worker process, so it is only
ever changed with a single UPDATE statement that increments
the count and restarts the window when it has expired.
"""

from datetime import datetime

from sqlalchemy import String, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from transaction_auth.models.base import Base


class RateLimitWindow(Base):
    __tablename__ = "rate_limit_windows"

    key: Mapped[str] = mapped_column(String(200), primary_key=True)
    window_start: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    hit_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<RateLimitWindow {self.key} {self.hit_count}>"
