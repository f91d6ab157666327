"""Analytics summary routes."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.models import User
from app.database import get_db
from app.schemas.analytics import AnalyticsQuery, AnalyticsReport
from app.services.analytics_service import AnalyticsService

router = APIRouter(prefix="/analytics", tags=["analytics"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="analytics failure")


@router.get("/summary", response_model=AnalyticsReport)
async def get_summary(
	request: Request,
	strain: str | None = Query(default=None, max_length=255),
	date_from: date | None = Query(default=None),
	date_to: date | None = Query(default=None),
	show_all: bool = Query(default=False),
	db: AsyncSession = Depends(get_db),
	user: User = Depends(get_current_user),
) -> AnalyticsReport:
	service = AnalyticsService(db, getattr(request.app.state, "redis", None))
	try:
		query = AnalyticsQuery(strain=strain, date_from=date_from, date_to=date_to, show_all=show_all)
		return await service.get_summary(user.id, query)
	except Exception as exc:
		raise _map_error(exc) from exc
