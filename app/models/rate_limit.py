from sqlalchemy import Column, Integer, String, DateTime

from app.database import Base

class RateLimitAttempt(Base):
    __tablename__ = "rate_limit_attempts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String, index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), index=True, nullable=False)
