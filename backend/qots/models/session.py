"""
Session model for storing signed-in browser sessions
"""
from typing import Any, Dict
from datetime import datetime
from sqlalchemy import String, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from qots.core.database import Base


class Session(Base):
    """Session payload keyed by the opaque token held in the session cookie"""

    __tablename__ = "sessions"

    token: Mapped[str] = mapped_column(String, primary_key=True)
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self):
        return f"<Session {self.token[:8]}...>"
