"""Key/value ORM model for the local fallback store."""

from sqlalchemy import LargeBinary, String
from sqlalchemy.orm import Mapped, mapped_column

from society_dues.models import Base, BaseModel


class LocalEntry(Base, BaseModel):
    """One raw byte value stored under a fixed string key."""

    __tablename__ = "local_entries"

    key: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    value: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)

    def __repr__(self) -> str:
        return f"<LocalEntry(key={self.key}, size={len(self.value or b'')})>"


__all__ = ["LocalEntry"]
