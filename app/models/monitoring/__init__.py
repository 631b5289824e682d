from app.models.monitoring.milestone import (
    Milestone,
    START_INTERVIEW,
    PROBATION_REVIEW,
    SEMESTER_REVIEW_PREFIX,
)
from app.models.monitoring.attendance import Attendance
from app.models.monitoring.notification import NotificationLog
from app.models.monitoring.remediation import RemediationPlan

__all__ = [
    "Milestone", "START_INTERVIEW", "PROBATION_REVIEW", "SEMESTER_REVIEW_PREFIX",
    "Attendance", "NotificationLog", "RemediationPlan",
]
