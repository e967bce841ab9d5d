from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ForbiddenError
from ..models.models import InterviewUsage
from .logger import logger
from .time_helpers import usage_period


class QuotaService:
    """Monthly cap on the number of interview sessions a user can start."""

    def __init__(self, db: Session, monthly_limit: int = None):
        self.db = db
        self.monthly_limit = settings.monthly_interview_quota if monthly_limit is None else monthly_limit

    def _usage(self, user_id: int) -> InterviewUsage:
        return (
            self.db.query(InterviewUsage)
            .filter(InterviewUsage.user_id == user_id, InterviewUsage.period == usage_period())
            .first()
        )

    def interviews_used(self, user_id: int) -> int:
        usage = self._usage(user_id)
        return usage.interview_count if usage else 0

    def enforce_interview_quota(self, user_id: int) -> None:
        used = self.interviews_used(user_id)
        if used >= self.monthly_limit:
            logger.warning(f"Interview quota exhausted", user_id=user_id, used=used, limit=self.monthly_limit)
            raise ForbiddenError("Monthly interview quota exceeded")

    def increment_interview_count(self, user_id: int) -> None:
        usage = self._usage(user_id)
        if usage is None:
            usage = InterviewUsage(user_id=user_id, period=usage_period(), interview_count=0)
            self.db.add(usage)
        usage.interview_count += 1
        self.db.commit()
