"""Supply inventory routes: CRUD, restock, low-stock alerts and the audit ledger."""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user, require_writer
from app.auth.models import User
from app.database import get_db
from app.schemas.supply import (
	AuditAction,
	RestockRequest,
	StockAlertsRead,
	SupplyAuditRead,
	SupplyCreate,
	SupplyRead,
	SupplyUpdate,
)
from app.services import supplies
from app.services.export_service import ExportService
from app.services.supply_service import SupplyService

router = APIRouter(prefix="/supplies", tags=["supplies"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(
		status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
		detail="Unexpected supply service failure",
	)


def _service(request: Request, db: AsyncSession) -> SupplyService:
	return SupplyService(db, getattr(request.app.state, "redis", None))


def _to_supply_read(supply: Any) -> SupplyRead:
	document = SupplyService.supply_document(supply)
	return SupplyRead(
		id=supply.id,
		name=supply.name,
		type=supply.supply_type,
		unit=supply.unit,
		cost=document["cost"],
		quantity=document["quantity"],
		reorder_link=supply.reorder_link,
		low_stock_threshold=document["lowStockThreshold"],
		stock_status=supplies.stock_status(document),
		created_at=supply.created_at,
		updated_at=supply.updated_at,
	)


@router.post("", response_model=SupplyRead, status_code=status.HTTP_201_CREATED)
async def create_supply(
	payload: SupplyCreate,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_writer),
) -> SupplyRead:
	try:
		supply = await _service(request, db).create_supply(user.id, payload)
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_supply_read(supply)


@router.get("", response_model=list[SupplyRead])
async def list_supplies(
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(get_current_user),
) -> list[SupplyRead]:
	try:
		rows = await _service(request, db).list_supplies(user.id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return [_to_supply_read(supply) for supply in rows]


@router.get("/alerts", response_model=StockAlertsRead)
async def stock_alerts(
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(get_current_user),
) -> StockAlertsRead:
	try:
		alerts = await _service(request, db).stock_alerts(user.id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return StockAlertsRead(
		empty=[_to_supply_read(supply) for supply in alerts[supplies.StockStatus.empty]],
		low=[_to_supply_read(supply) for supply in alerts[supplies.StockStatus.low]],
	)


@router.get("/audits", response_model=list[SupplyAuditRead])
async def list_audits(
	request: Request,
	action: AuditAction | None = Query(default=None),
	limit: int = Query(default=200, ge=1, le=1000),
	db: AsyncSession = Depends(get_db),
	user: User = Depends(get_current_user),
) -> list[SupplyAuditRead]:
	try:
		audits = await _service(request, db).list_audits(user.id, action=action, limit=limit)
	except Exception as exc:
		raise _map_error(exc) from exc
	return [SupplyAuditRead.model_validate(audit) for audit in audits]


@router.get("/audits/export")
async def export_audits(
	action: AuditAction | None = Query(default=None),
	db: AsyncSession = Depends(get_db),
	user: User = Depends(get_current_user),
) -> Response:
	try:
		body = await ExportService(db).export_audits_csv(user.id, action=action)
	except Exception as exc:
		raise _map_error(exc) from exc
	filename = "supply_consumption.csv" if action == AuditAction.consume else "supply_audit_log.csv"
	return Response(
		content=body,
		media_type="text/csv",
		headers={"content-disposition": f'attachment; filename="{filename}"'},
	)


@router.get("/{supply_id}", response_model=SupplyRead)
async def get_supply(
	supply_id: uuid.UUID,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(get_current_user),
) -> SupplyRead:
	try:
		supply = await _service(request, db).get_supply(user.id, supply_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_supply_read(supply)


@router.patch("/{supply_id}", response_model=SupplyRead)
async def update_supply(
	supply_id: uuid.UUID,
	payload: SupplyUpdate,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_writer),
) -> SupplyRead:
	try:
		supply = await _service(request, db).update_supply(user.id, supply_id, payload)
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_supply_read(supply)


@router.post("/{supply_id}/restock", response_model=SupplyRead)
async def restock_supply(
	supply_id: uuid.UUID,
	payload: RestockRequest,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_writer),
) -> SupplyRead:
	try:
		supply = await _service(request, db).restock(user.id, supply_id, payload)
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_supply_read(supply)


@router.delete("/{supply_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_supply(
	supply_id: uuid.UUID,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_writer),
) -> Response:
	try:
		await _service(request, db).delete_supply(user.id, supply_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return Response(status_code=status.HTTP_204_NO_CONTENT)
