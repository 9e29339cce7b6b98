from sqlalchemy import BigInteger, Column, DateTime, Text

from app.database import Base


class ChatUser(Base):
    __tablename__ = "chat_users"

    id = Column(BigInteger, primary_key=True, autoincrement=False)  # Telegram chat id
    username = Column(Text)
    first_name = Column(Text)
    last_name = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False)
