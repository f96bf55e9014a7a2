"""Remote per-user document ORM model."""

from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from society_dues.models import Base, BaseModel


class SocietyDocument(Base, BaseModel):
    """Full society model (units, expenses, fee schedule) stored per session identity.

    The payload holds the camelCase document body; createdAt/updatedAt are served
    from the row timestamps rather than stored in the payload.
    """

    __tablename__ = "society_documents"

    key: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        unique=True,
        index=True,
        comment="Session identity (uid) owning this document",
    )
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    def to_document(self) -> dict[str, Any]:
        """Return the payload with createdAt/updatedAt attached."""
        document = dict(self.payload or {})
        document["createdAt"] = self.created_at.isoformat() if self.created_at else None
        document["updatedAt"] = self.updated_at.isoformat() if self.updated_at else None
        return document

    def __repr__(self) -> str:
        return f"<SocietyDocument(id={self.id}, key={self.key})>"


__all__ = ["SocietyDocument"]
