import enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.sql import func

from gallerydesk.models.account import Base


class GalleryState(str, enum.Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    TRASHED = "trashed"
    # Never stored; the row is gone
    PURGED = "purged"


class Gallery(Base):
    __tablename__ = "Gallery"
    __table_args__ = (Index("IX_Gallery_Owner_State", "UserID", "IsDeleted", "IsArchived"),)
    GalleryID = Column(Integer, primary_key=True, autoincrement=True)
    UserID = Column(Integer, ForeignKey("Accounts.UserID"), nullable=False)
    Title = Column(String(255), nullable=False)
    Slug = Column(String(255), nullable=False, unique=True)
    EventDate = Column(DateTime, nullable=False)
    Location = Column(String(255), nullable=True)
    ClientName = Column(String(255), nullable=True)
    Category = Column(String(64), nullable=True)
    IsPublic = Column(Boolean, default=True, nullable=False)
    ShowOnProfile = Column(Boolean, default=True, nullable=False)
    IsArchived = Column(Boolean, default=False, nullable=False)
    IsDeleted = Column(Boolean, default=False, nullable=False)
    DeletedAt = Column(DateTime, nullable=True)
    CreatedAt = Column(DateTime, server_default=func.now())
    UpdatedAt = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def state(self) -> GalleryState:
        # A trashed gallery may still carry IsArchived; trash wins
        if self.IsDeleted:
            return GalleryState.TRASHED
        if self.IsArchived:
            return GalleryState.ARCHIVED
        return GalleryState.ACTIVE
