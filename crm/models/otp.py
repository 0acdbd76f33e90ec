from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, UniqueConstraint

from crm.database import Base


class OtpEntry(Base):
    __tablename__ = "otp_codes"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), nullable=False)
    code = Column(String(10), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    verified = Column(Boolean, nullable=False, default=False)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    # One row per recipient: a concurrent insert for the same email fails
    # instead of leaving two active codes.
    __table_args__ = (
        UniqueConstraint("email", name="uq_otp_email"),
        Index("ix_otp_expires_at", "expires_at"),
    )
