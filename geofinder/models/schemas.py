from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.schema import Column
from sqlalchemy.types import Integer, String, Uuid, DateTime, TEXT
from uuid6 import uuid7
from datetime import datetime


class Base(DeclarativeBase):
    pass


class KeyValueEntry(Base):
    """Durable key-value storage shared by every screen (one row per key)."""

    __tablename__ = "key_value_store"
    key = Column(String, primary_key=True, index=True)
    value = Column(TEXT, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


class GameSessionRecord(Base):
    __tablename__ = "game_session"
    game_session_id = Column(Uuid, primary_key=True, default=uuid7)
    created_at = Column(DateTime, default=datetime.now)


class ScoreRecord(Base):
    __tablename__ = "score"
    score_id = Column(Uuid, primary_key=True, default=uuid7)
    game_session_id = Column(Uuid, index=True, nullable=False)
    score = Column(Integer, nullable=False)
    correct_answers = Column(Integer, default=0)
    total_rounds = Column(Integer, default=0)
    rounds_played = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.now)
