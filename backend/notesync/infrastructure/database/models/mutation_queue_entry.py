"""SQLAlchemy ORM model for mutation queue entries."""

from datetime import datetime

from sqlalchemy import JSON, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from notesync.infrastructure.database.base import Base, UTCDateTime


class MutationQueueEntryModel(Base):
    """ORM model — maps to the 'mutation_queue' table."""

    __tablename__ = "mutation_queue"

    entry_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[str] = mapped_column(String(10), nullable=False)
    target_table: Mapped[str] = mapped_column(String(100), nullable=False)
    target_record_id: Mapped[str] = mapped_column(String(36), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="pending")
    synced_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_mutation_queue_owner_status", "owner_id", "status"),
        Index("ix_mutation_queue_target", "target_table", "target_record_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<MutationQueueEntryModel(entry_id={self.entry_id}, "
            f"action='{self.action}', status='{self.status}')>"
        )
