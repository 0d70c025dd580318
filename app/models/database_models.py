"""
SQLAlchemy ORM models for the PRD store.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    Boolean,
    CheckConstraint,
    JSON,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base


class PRDRecord(Base):
    """A persisted PRD. Sections and public settings are stored as JSON blobs."""

    __tablename__ = "prds"
    __table_args__ = (
        CheckConstraint("upvotes >= 0", name="ck_prds_upvotes_non_negative"),
    )

    id = Column(String(64), primary_key=True)
    title = Column(String(255), nullable=False, default="New PRD")
    product_name = Column(String(255), nullable=False, default="")
    short_description = Column(Text, nullable=False, default="")
    sections = Column(JSON, nullable=False, default=list)
    is_public = Column(Boolean, nullable=False, default=False)
    public_settings = Column(JSON, nullable=False, default=dict)
    upvotes = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="draft", index=True)
    approval_status = Column(String(20), nullable=False, default="pending")
    last_updated = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    comments = relationship(
        "CommentRecord",
        back_populates="prd",
        cascade="all, delete-orphan",
        order_by="CommentRecord.created_at.desc()",
    )


class CommentRecord(Base):
    """A comment left on a published PRD."""

    __tablename__ = "prd_comments"

    id = Column(String(64), primary_key=True)
    prd_id = Column(String(64), ForeignKey("prds.id", ondelete="CASCADE"), nullable=False, index=True)
    author = Column(String(255), nullable=False)
    avatar = Column(String(512), nullable=False, default="")
    text = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    # Relationships
    prd = relationship("PRDRecord", back_populates="comments")


class SettingsRecord(Base):
    """Process-wide app settings, stored under a single fixed key."""

    __tablename__ = "app_settings"

    key = Column(String(64), primary_key=True)
    data = Column(JSON, nullable=False, default=dict)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
