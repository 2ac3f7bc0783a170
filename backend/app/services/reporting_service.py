"""
Daily task report.
"""

from __future__ import annotations

from collections import Counter
from datetime import date

from app.interfaces.task_repository import ITaskRepository
from app.models.enums import TaskStatus
from app.models.schedule import DailyReport, DailyReportSummary
from app.models.user import UserAccount
from app.utils.datetime_utils import local_day_bounds


async def generate_daily_report(
    task_repo: ITaskRepository,
    user: UserAccount,
    day: date,
) -> DailyReport:
    """
    Summarize the tasks a user created on ``day`` (user-local) by status.

    Suggestions point at work left pending or postponed.
    """
    start, end = local_day_bounds(day, user.timezone)
    tasks = await task_repo.list_created_in_range(user.id, start, end)
    counts = Counter(task.status for task in tasks)

    summary = DailyReportSummary(
        total=len(tasks),
        completed=counts[TaskStatus.COMPLETED],
        scheduled=counts[TaskStatus.SCHEDULED],
        postponed=counts[TaskStatus.POSTPONED],
        skipped=counts[TaskStatus.SKIPPED],
        canceled=counts[TaskStatus.CANCELED],
        pending=counts[TaskStatus.PENDING],
    )

    suggestions = []
    if summary.pending:
        suggestions.append(
            f"Consider scheduling {summary.pending} pending task(s) early tomorrow."
        )
    if summary.postponed:
        suggestions.append(f"Review {summary.postponed} postponed task(s) for priority.")

    return DailyReport(date=day.isoformat(), summary=summary, suggestions=suggestions)
