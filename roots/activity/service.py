import logging

from sqlalchemy.orm import Session

from roots.models.activity_log import ActivityLog

logger = logging.getLogger(__name__)


def log_activity(db: Session, user_id: int, section: str, message: str) -> None:
    """Write-only audit trail; a failed write never fails the request."""
    try:
        db.add(ActivityLog(user_id=user_id, section=section, message=message[:255]))
        db.commit()
    except Exception as e:
        db.rollback()
        logger.warning("Failed to log activity for user %s: %s", user_id, e)
