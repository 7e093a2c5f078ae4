# authapi/models/user.py
from sqlalchemy import Boolean, Column, DateTime, Integer, String, func
from sqlalchemy.orm import relationship

from authapi.core.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    username = Column(String(100), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)

    # Flips to true exactly once, together with consuming the registration code.
    verified = Column(Boolean, nullable=False, default=False, server_default="false")
    eula_accepted = Column(Boolean, nullable=False, default=False, server_default="false")

    date_joined = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    verification_codes = relationship(
        "VerificationCode",
        back_populates="user",
        cascade="all, delete-orphan",
    )
