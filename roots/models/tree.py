
from sqlalchemy import Column, Integer, Boolean, String, Text, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from roots.db.session import Base

class FamilyTree(Base):
    __tablename__ = "family_trees"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    gedcom_path = Column(String(512))
    is_public = Column(Boolean, nullable=False, default=False)
    archive_source = Column(String(255))
    document_code = Column(String(120))
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    owner = relationship("User")

class Person(Base):
    """Derived from the tree's GEDCOM file; rebuilt whenever the file changes."""
    __tablename__ = "persons"
    id = Column(Integer, primary_key=True, index=True)
    tree_id = Column(Integer, ForeignKey("family_trees.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
