
from sqlalchemy import Column, Integer, Boolean, String, Text, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from roots.db.session import Base

class GalleryItem(Base):
    __tablename__ = "gallery_items"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    image_path = Column(String(512), nullable=False)
    is_public = Column(Boolean, nullable=False, default=True)
    archive_source = Column(String(255))
    document_code = Column(String(120))
    location = Column(String(255))
    year = Column(String(20))
    photographer = Column(String(255))
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    uploader = relationship("User")
