"""
Cleanup Service - Maintenance operations for database hygiene
"""
from sqlalchemy.orm import Session

from atams.logging import get_logger

from app.repositories.used_jti_repository import UsedJtiRepository

logger = get_logger(__name__)


class CleanupService:
    def __init__(self) -> None:
        self.jti_repo = UsedJtiRepository()

    def cleanup_old_jti(self, db: Session, days_old: int = 7) -> int:
        """
        Delete consumed ceremony JTI records to prevent table bloat

        Ceremony tokens expire after CEREMONY_TIMEOUT_SECONDS, so rows older
        than that can no longer block a replay.

        Args:
            db: Database session
            days_old: Delete records older than this many days (default: 7)

        Returns:
            int: Number of records deleted
        """
        deleted = self.jti_repo.cleanup_old_jtis(db, older_than_days=days_old)
        logger.info("Used JTI cleanup", extra={'extra_data': {'deleted': deleted, 'days_old': days_old}})
        return deleted
