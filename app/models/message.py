from sqlalchemy import Column, DateTime, Index, Integer, Text

from app.database import Base


class StoredMessage(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_handle = Column(Text, nullable=False)
    text = Column(Text)
    timestamp = Column(DateTime, nullable=False)  # store-local wall clock, not UTC

    __table_args__ = (Index("ix_messages_user_handle_id", "user_handle", "id"),)
