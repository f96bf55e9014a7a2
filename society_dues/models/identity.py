"""Identity ORM model backing the built-in identity provider."""

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from society_dues.models import Base, BaseModel


class Identity(Base, BaseModel):
    """A sign-in identity: opaque uid, login email and hashed password.

    The uid is what keys the per-user remote document; it never changes once
    issued, even if the email is edited.
    """

    __tablename__ = "identities"

    uid: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Opaque session identity used as document key",
    )
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Login email (stored lower-cased)",
    )
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="PBKDF2 hash in pbkdf2_sha256$iterations$salt$digest form",
    )

    __table_args__ = (
        Index("idx_identity_uid", "uid", unique=True),
        Index("idx_identity_email", "email", unique=True),
    )

    def __repr__(self) -> str:
        return f"<Identity(id={self.id}, uid={self.uid}, email={self.email})>"


__all__ = ["Identity"]
