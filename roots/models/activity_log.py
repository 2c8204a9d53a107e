
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, func
from roots.db.session import Base

class ActivityLog(Base):
    __tablename__ = "activity_logs"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    section = Column(String(50), nullable=False)
    message = Column(String(255), nullable=False)
    created_at = Column(DateTime, server_default=func.now())
