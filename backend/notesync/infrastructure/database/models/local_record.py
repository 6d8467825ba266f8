"""SQLAlchemy ORM model for device-local records."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from notesync.infrastructure.database.base import Base, UTCDateTime


class LocalRecordModel(Base):
    """ORM model — maps to the 'local_records' table."""

    __tablename__ = "local_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False)
    table_name: Mapped[str] = mapped_column(String(100), nullable=False)
    fields: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    synced: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_local_records_owner", "owner_id"),
        Index("ix_local_records_owner_synced", "owner_id", "synced"),
        Index("ix_local_records_table", "table_name"),
    )

    def __repr__(self) -> str:
        return (
            f"<LocalRecordModel(id={self.id}, "
            f"table='{self.table_name}', synced={self.synced})>"
        )
