from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import relationship

from authapi.core.base import Base


class CodePurpose(str, Enum):
    REGISTER = "Register"
    PASSWORD_CHANGE = "PasswordChange"
    PASSWORD_RESET = "PasswordReset"


class VerificationCode(Base):
    __tablename__ = "verification_codes"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    purpose = Column(String(32), nullable=False, server_default=CodePurpose.REGISTER.value)
    code = Column(String(16), nullable=False)
    expiration_time = Column(DateTime(timezone=True), nullable=False)
    used = Column(Boolean, nullable=False, default=False, server_default="false")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    user = relationship("User", back_populates="verification_codes")

    __table_args__ = (
        Index("ix_verification_codes_user_purpose_used", "user_id", "purpose", "used"),
    )

    def mark_used(self, when: datetime) -> None:
        # One-way: nothing ever sets used back to False.
        self.used = True
        self.updated_at = when

    def __repr__(self) -> str:
        return f"<VerificationCode id={self.id} user_id={self.user_id} purpose={self.purpose} used={self.used}>"
