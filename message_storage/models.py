"""
SQLAlchemy ORM models for database tables.

This module contains the single table definition used by MessageStore.
For Pydantic request/response schemas, see schemas.py.
"""

from sqlalchemy import Column, Integer, Text

from message_storage.storage import Base


# Fixed column order of the messages table (id excluded)
MESSAGE_COLUMNS = (
    "message",
    "status",
    "tag",
    "uri",
    "server",
    "time",
    "ip",
    "agent",
)


class Message(Base):
    """
    SQLAlchemy model for stored messages.

    Table: messages
    Primary Key: id (INTEGER PRIMARY KEY, assigned by SQLite)
    """
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True)
    message = Column(Text)
    status = Column(Text)  # "new" at insert, never changed here
    tag = Column(Text)
    uri = Column(Text)
    server = Column(Text)
    time = Column(Text)  # UTC, YYYY-MM-DD HH:MM:SS
    ip = Column(Text)
    agent = Column(Text)
