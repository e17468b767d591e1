from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from gallerydesk.models.account import Base


class PlanChangeAudit(Base):
    __tablename__ = "PlanChangeAudit"
    AuditID = Column(Integer, primary_key=True, autoincrement=True)
    UserID = Column(Integer, ForeignKey("Accounts.UserID"), nullable=False)
    OldPlan = Column(String(32), nullable=True)
    NewPlan = Column(String(32), nullable=True)
    NewLimit = Column(Integer, nullable=True)  # NULL = unlimited
    ArchivedCount = Column(Integer, nullable=False, default=0)
    ArchivedIDs = Column(Text, nullable=True)  # JSON list of GalleryIDs
    CreatedAt = Column(DateTime, server_default=func.now())
