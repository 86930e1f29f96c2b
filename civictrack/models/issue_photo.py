# File: civictrack\models\issue_photo.py
# Project: civictrack

from sqlalchemy import Integer, String, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from civictrack.db.base import Base

class IssuePhoto(Base):
    __tablename__ = "issue_photos"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    issue_id: Mapped[str] = mapped_column(ForeignKey("issues.id", ondelete="CASCADE"), index=True)
    photo_url: Mapped[str] = mapped_column(String(2000))
    # upload order; position 0 is the cover photo
    position: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
