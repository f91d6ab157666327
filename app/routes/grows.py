"""Grow CRUD, lifecycle transition, flush and journal routes."""

from __future__ import annotations

import uuid
from enum import StrEnum
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user, require_writer
from app.auth.models import User
from app.database import get_db
from app.schemas.grow import (
	AdvanceRequest,
	FlushPatch,
	GrowActionsRead,
	GrowCreate,
	GrowDataset,
	GrowRead,
	GrowTransitionRead,
	GrowUpdate,
	NoteCreate,
	NoteRead,
	PhotoCreate,
	PhotoRead,
	StageDateUpdate,
	StoreRequest,
)
from app.services import grow_analytics, lifecycle
from app.services.export_service import ExportService
from app.services.grow_service import GrowService
from app.services.lifecycle import PreconditionViolation

router = APIRouter(prefix="/grows", tags=["grows"])


class ExportFormat(StrEnum):
	csv = "csv"
	json = "json"


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, HTTPException):
		return exc
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, PreconditionViolation):
		return HTTPException(
			status_code=status.HTTP_409_CONFLICT,
			detail={"error": exc.code, "message": str(exc)},
		)
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(
		status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
		detail="Unexpected grow service failure",
	)


def _service(request: Request, db: AsyncSession) -> GrowService:
	return GrowService(db, getattr(request.app.state, "redis", None))


def _to_grow_read(grow: Any) -> GrowRead:
	document = GrowService.to_document(grow)
	actions = lifecycle.available_actions(document)
	wet, dry = grow_analytics.yield_totals(document)
	return GrowRead(
		id=grow.id,
		strain=grow.strain,
		abbreviation=grow.abbreviation,
		type=grow.grow_type,
		stage=grow.stage,
		status=grow.status,
		stage_dates=dict(grow.stage_dates or {}),
		flushes=lifecycle.current_flushes(document),
		cost=float(grow.cost) if grow.cost is not None else None,
		recipe_items=grow.recipe_items,
		wet_total=wet,
		dry_total=dry,
		extra=dict(grow.extra or {}),
		actions=GrowActionsRead(
			next_stage=actions.next_stage.value if actions.next_stage is not None else None,
			store_label=actions.store_label,
			archive_label=actions.archive_label,
		),
		created_at=grow.created_at,
		updated_at=grow.updated_at,
	)


def _to_transition_read(grow: Any, changes: dict[str, Any]) -> GrowTransitionRead:
	return GrowTransitionRead(applied=bool(changes), changes=changes, grow=_to_grow_read(grow))


# ── CRUD ────────────────────────────────────────────────────────────────────


@router.post("", response_model=GrowRead, status_code=status.HTTP_201_CREATED)
async def create_grow(
	payload: GrowCreate,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_writer),
) -> GrowRead:
	try:
		grow = await _service(request, db).create_grow(user.id, payload)
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_grow_read(grow)


@router.get("", response_model=list[GrowRead])
async def list_grows(
	request: Request,
	dataset: GrowDataset = Query(default=GrowDataset.active),
	db: AsyncSession = Depends(get_db),
	user: User = Depends(get_current_user),
) -> list[GrowRead]:
	try:
		grows = await _service(request, db).list_grows(user.id, dataset)
	except Exception as exc:
		raise _map_error(exc) from exc
	return [_to_grow_read(grow) for grow in grows]


@router.get("/export")
async def export_grows(
	export_format: ExportFormat = Query(default=ExportFormat.csv, alias="format"),
	db: AsyncSession = Depends(get_db),
	user: User = Depends(get_current_user),
) -> Response:
	service = ExportService(db)
	try:
		if export_format == ExportFormat.json:
			backup = await service.export_backup(user.id)
			return JSONResponse(
				content=backup,
				headers={"content-disposition": 'attachment; filename="mycotrack-backup.json"'},
			)
		body = await service.export_csv(user.id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return Response(
		content=body,
		media_type="text/csv",
		headers={"content-disposition": 'attachment; filename="grows.csv"'},
	)


@router.get("/{grow_id}", response_model=GrowRead)
async def get_grow(
	grow_id: uuid.UUID,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(get_current_user),
) -> GrowRead:
	try:
		grow = await _service(request, db).get_grow(user.id, grow_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_grow_read(grow)


@router.patch("/{grow_id}", response_model=GrowTransitionRead)
async def update_grow(
	grow_id: uuid.UUID,
	payload: GrowUpdate,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_writer),
) -> GrowTransitionRead:
	try:
		grow, changes = await _service(request, db).update_grow(user.id, grow_id, payload)
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_transition_read(grow, changes)


@router.delete("/{grow_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_grow(
	grow_id: uuid.UUID,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_writer),
) -> Response:
	try:
		await _service(request, db).delete_grow(user.id, grow_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Lifecycle ───────────────────────────────────────────────────────────────


@router.post("/{grow_id}/advance", response_model=GrowTransitionRead)
async def advance_stage(
	grow_id: uuid.UUID,
	request: Request,
	payload: AdvanceRequest | None = None,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_writer),
) -> GrowTransitionRead:
	at = payload.at if payload is not None else None
	try:
		grow, changes = await _service(request, db).advance_stage(user.id, grow_id, at=at)
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_transition_read(grow, changes)


@router.post("/{grow_id}/archive", response_model=GrowTransitionRead)
async def toggle_archive(
	grow_id: uuid.UUID,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_writer),
) -> GrowTransitionRead:
	try:
		grow, changes = await _service(request, db).toggle_archive(user.id, grow_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_transition_read(grow, changes)


@router.post("/{grow_id}/store", response_model=GrowTransitionRead)
async def toggle_store(
	grow_id: uuid.UUID,
	request: Request,
	payload: StoreRequest | None = None,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_writer),
) -> GrowTransitionRead:
	location = payload.location if payload is not None else None
	try:
		grow, changes = await _service(request, db).toggle_store(user.id, grow_id, location=location)
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_transition_read(grow, changes)


@router.post("/{grow_id}/finish-harvest", response_model=GrowTransitionRead)
async def finish_harvest(
	grow_id: uuid.UUID,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_writer),
) -> GrowTransitionRead:
	try:
		grow, changes = await _service(request, db).finish_harvest(user.id, grow_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_transition_read(grow, changes)


@router.put("/{grow_id}/stage-dates/{stage}", response_model=GrowTransitionRead)
async def set_stage_date(
	grow_id: uuid.UUID,
	stage: str,
	payload: StageDateUpdate,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_writer),
) -> GrowTransitionRead:
	try:
		grow, changes = await _service(request, db).set_stage_date(user.id, grow_id, stage, payload.value)
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_transition_read(grow, changes)


# ── Flushes ─────────────────────────────────────────────────────────────────


@router.post("/{grow_id}/flushes", response_model=GrowTransitionRead, status_code=status.HTTP_201_CREATED)
async def add_flush(
	grow_id: uuid.UUID,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_writer),
) -> GrowTransitionRead:
	try:
		grow, changes = await _service(request, db).add_flush(user.id, grow_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_transition_read(grow, changes)


@router.patch("/{grow_id}/flushes/{index}", response_model=GrowTransitionRead)
async def update_flush(
	grow_id: uuid.UUID,
	index: int,
	payload: FlushPatch,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_writer),
) -> GrowTransitionRead:
	try:
		grow, changes = await _service(request, db).update_flush(user.id, grow_id, index, payload.to_changes())
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_transition_read(grow, changes)


# ── Notes & photos ──────────────────────────────────────────────────────────


@router.post("/{grow_id}/notes", response_model=NoteRead, status_code=status.HTTP_201_CREATED)
async def add_note(
	grow_id: uuid.UUID,
	payload: NoteCreate,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_writer),
) -> NoteRead:
	try:
		note = await _service(request, db).add_note(user.id, grow_id, payload)
	except Exception as exc:
		raise _map_error(exc) from exc
	return NoteRead.model_validate(note)


@router.get("/{grow_id}/notes", response_model=list[NoteRead])
async def list_notes(
	grow_id: uuid.UUID,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(get_current_user),
) -> list[NoteRead]:
	try:
		notes = await _service(request, db).list_notes(user.id, grow_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return [NoteRead.model_validate(note) for note in notes]


@router.post("/{grow_id}/photos", response_model=PhotoRead, status_code=status.HTTP_201_CREATED)
async def add_photo(
	grow_id: uuid.UUID,
	payload: PhotoCreate,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_writer),
) -> PhotoRead:
	try:
		photo = await _service(request, db).add_photo(user.id, grow_id, payload)
	except Exception as exc:
		raise _map_error(exc) from exc
	return PhotoRead.model_validate(photo)


@router.get("/{grow_id}/photos", response_model=list[PhotoRead])
async def list_photos(
	grow_id: uuid.UUID,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(get_current_user),
) -> list[PhotoRead]:
	try:
		photos = await _service(request, db).list_photos(user.id, grow_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return [PhotoRead.model_validate(photo) for photo in photos]
