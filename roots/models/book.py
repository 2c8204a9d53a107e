
from sqlalchemy import Column, Integer, BigInteger, Boolean, String, Text, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from roots.db.session import Base

class Book(Base):
    __tablename__ = "books"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    author = Column(String(255))
    description = Column(Text)
    category = Column(String(120))
    archive_source = Column(String(255))
    document_code = Column(String(120))
    file_path = Column(String(512), nullable=False)
    cover_path = Column(String(512))
    file_size = Column(BigInteger)
    download_count = Column(Integer, nullable=False, default=0)
    is_public = Column(Boolean, nullable=False, default=True)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    uploader = relationship("User")
