"""Stage reminder routes."""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.models import User
from app.config import get_settings
from app.database import get_db
from app.schemas.reminders import DueRemindersResponse, ReminderRead
from app.services.reminders import Reminder, ReminderService

router = APIRouter(prefix="/reminders", tags=["reminders"])


def _to_reminder_read(reminder: Reminder) -> ReminderRead:
	return ReminderRead(
		id=reminder.id,
		kind=reminder.kind.value,
		grow_id=reminder.grow_id,
		label=reminder.label,
		title=reminder.title,
		body=reminder.body,
		due_at=reminder.due_at,
	)


@router.get("/due", response_model=DueRemindersResponse)
async def get_due_reminders(
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(get_current_user),
) -> DueRemindersResponse:
	now = datetime.now(UTC)
	service = ReminderService(db, getattr(request.app.state, "redis", None))
	try:
		due = await service.collect_due(user.id, now=now)
	except Exception as exc:
		raise HTTPException(
			status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
			detail="reminder evaluation failure",
		) from exc
	return DueRemindersResponse(
		enabled=get_settings().reminders_enabled,
		generated_at=now,
		items=[_to_reminder_read(reminder) for reminder in due],
	)
