from sqlalchemy import BigInteger, Column, DateTime, Integer, String, Text

from crm.database import Base


class MeetingEntry(Base):
    __tablename__ = "meetings"

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    date_time = Column(DateTime, nullable=False)
    status = Column(String(50), nullable=True)
    meeting_link = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    company_id = Column(BigInteger, nullable=True)
    assigned_to = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
