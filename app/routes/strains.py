"""Strain reference CRUD routes."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user, require_writer
from app.auth.models import User
from app.database import get_db
from app.schemas.strain import StrainCreate, StrainRead, StrainUpdate
from app.services.strain_service import StrainService

router = APIRouter(prefix="/strains", tags=["strains"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(
		status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
		detail="Unexpected strain service failure",
	)


@router.post("", response_model=StrainRead, status_code=status.HTTP_201_CREATED)
async def create_strain(
	payload: StrainCreate,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_writer),
) -> StrainRead:
	try:
		strain = await StrainService(db).create_strain(user.id, payload)
	except Exception as exc:
		raise _map_error(exc) from exc
	return StrainRead.model_validate(strain)


@router.get("", response_model=list[StrainRead])
async def list_strains(
	db: AsyncSession = Depends(get_db),
	user: User = Depends(get_current_user),
) -> list[StrainRead]:
	try:
		strains = await StrainService(db).list_strains(user.id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return [StrainRead.model_validate(strain) for strain in strains]


@router.get("/{strain_id}", response_model=StrainRead)
async def get_strain(
	strain_id: uuid.UUID,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(get_current_user),
) -> StrainRead:
	try:
		strain = await StrainService(db).get_strain(user.id, strain_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return StrainRead.model_validate(strain)


@router.patch("/{strain_id}", response_model=StrainRead)
async def update_strain(
	strain_id: uuid.UUID,
	payload: StrainUpdate,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_writer),
) -> StrainRead:
	try:
		strain = await StrainService(db).update_strain(user.id, strain_id, payload)
	except Exception as exc:
		raise _map_error(exc) from exc
	return StrainRead.model_validate(strain)


@router.delete("/{strain_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_strain(
	strain_id: uuid.UUID,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_writer),
) -> Response:
	try:
		await StrainService(db).delete_strain(user.id, strain_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return Response(status_code=status.HTTP_204_NO_CONTENT)
