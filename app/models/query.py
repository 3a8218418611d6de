
import enum
from datetime import datetime, timezone
from uuid import uuid4
from sqlalchemy import Column, String, Integer, Text, DateTime, JSON, ForeignKey, Index
from sqlalchemy.orm import relationship
from app.core.database import Base


class QueryStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    # Reserved, nothing produces it yet
    CANCELLED = "CANCELLED"


class Platform(str, enum.Enum):
    YOUTUBE = "YOUTUBE"
    INSTAGRAM = "INSTAGRAM"
    REDDIT = "REDDIT"
    TWITTER = "TWITTER"
    TIKTOK = "TIKTOK"
    LINKEDIN = "LINKEDIN"
    FACEBOOK = "FACEBOOK"
    OTHER = "OTHER"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class Query(Base):
    __tablename__ = "queries"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(255), nullable=False, index=True)
    keywords = Column(JSON, nullable=False)
    platforms = Column(JSON, nullable=False)
    filters = Column(JSON, nullable=False, default=dict)
    status = Column(String(20), nullable=False, default=QueryStatus.PENDING.value, index=True)
    total_results = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    results = relationship(
        "QueryResult",
        back_populates="query",
        cascade="all, delete-orphan",
        order_by="QueryResult.created_at",
    )

    __table_args__ = (
        Index("ix_queries_created_at", "created_at"),
    )

    def __repr__(self):
        return f"<Query(id={self.id}, status={self.status})>"


class QueryResult(Base):
    __tablename__ = "query_results"

    id = Column(String(36), primary_key=True, default=new_id)
    query_id = Column(String(36), ForeignKey("queries.id", ondelete="CASCADE"), nullable=False, index=True)
    platform = Column(String(20), nullable=False)
    attributes = Column(JSON, nullable=False)
    # One JSON string per channel record
    data = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    query = relationship("Query", back_populates="results")
