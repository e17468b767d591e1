import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class Account(Base):
    __tablename__ = "Accounts"
    UserID = Column(Integer, primary_key=True, autoincrement=True)
    # Owner handle; first segment of every gallery slug
    Username = Column(String(64), nullable=False, unique=True)
    Email = Column(String(255), nullable=False, unique=True)
    PlanKey = Column(String(32), nullable=False, default="free")
    CreatedAt = Column(DateTime, server_default=func.now())
    IsActive = Column(Boolean, default=True)


class AccountSession(Base):
    __tablename__ = "AccountSession"
    SessionID = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    UserID = Column(Integer, ForeignKey("Accounts.UserID"), nullable=False)
    CreatedAt = Column(DateTime, server_default=func.now())
    ExpiresAt = Column(DateTime, nullable=True)
    IsActive = Column(Boolean, default=True)
