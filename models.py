from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from database import Base


def utcnow():
    return datetime.now(timezone.utc)


# -------------------
# Wallet-based user (canonical id = lower-cased wallet address)
# -------------------
class User(Base):
    __tablename__ = "users"
    canonical_user_id = Column(String(42), primary_key=True, index=True)
    wallet = Column(String(42), nullable=False, index=True)
    farcaster_fid = Column(Integer, nullable=True)
    display_name = Column(String(128), nullable=True)
    avatar_url = Column(String(512), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    games = relationship("Game", back_populates="user")


class Game(Base):
    __tablename__ = "games"
    # gameId from the client; the primary key makes a second insert fail
    id = Column(String(128), primary_key=True)
    canonical_user_id = Column(String(42), ForeignKey("users.canonical_user_id", ondelete="CASCADE"), nullable=False, index=True)
    total_score = Column(Integer, nullable=False)
    ended_at = Column(DateTime(timezone=True), default=utcnow)

    user = relationship("User", back_populates="games")
    rounds = relationship("Round", back_populates="game", order_by="Round.round_index")
    mint = relationship("Mint", back_populates="game", uselist=False)


class Round(Base):
    __tablename__ = "rounds"
    id = Column(Integer, primary_key=True, index=True)
    game_id = Column(String(128), ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True)
    photo_id = Column(Integer, nullable=True)
    round_index = Column(Integer, nullable=False)
    year_guess = Column(Integer, nullable=True)
    year_true = Column(Integer, nullable=True)
    delta_years = Column(Integer, nullable=True)
    score = Column(Integer, nullable=True)
    answered_at = Column(DateTime(timezone=True), default=utcnow)

    game = relationship("Game", back_populates="rounds")


class Mint(Base):
    __tablename__ = "mints"
    id = Column(Integer, primary_key=True, index=True)
    game_id = Column(String(128), ForeignKey("games.id", ondelete="CASCADE"), nullable=False, unique=True)
    tx_hash = Column(String(66), nullable=False, unique=True)
    chain_id = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False)  # success | unconfirmed
    created_at = Column(DateTime(timezone=True), default=utcnow)

    game = relationship("Game", back_populates="mint")


class Photo(Base):
    __tablename__ = "photos"
    id = Column(Integer, primary_key=True, index=True)
    image_url = Column(String(512), nullable=False)
    title = Column(String(256), nullable=True)
    year_true = Column(Integer, nullable=False)
    year_min = Column(Integer, nullable=True)
    year_max = Column(Integer, nullable=True)
