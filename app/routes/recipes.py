"""Recipe CRUD, cost of goods and manual batch consumption routes."""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user, require_writer
from app.auth.models import User
from app.database import get_db
from app.schemas.supply import (
	ConsumeRequest,
	RecipeCreate,
	RecipeItemRead,
	RecipeRead,
	RecipeUpdate,
	SupplyAuditRead,
)
from app.services import supplies
from app.services.supply_service import SupplyService

router = APIRouter(prefix="/recipes", tags=["recipes"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(
		status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
		detail="Unexpected recipe service failure",
	)


def _service(request: Request, db: AsyncSession) -> SupplyService:
	return SupplyService(db, getattr(request.app.state, "redis", None))


def _to_recipe_read(recipe: Any, supplies_by_id: Mapping[str, Mapping[str, Any]]) -> RecipeRead:
	document = SupplyService.recipe_document(recipe, supplies_by_id)
	return RecipeRead(
		id=recipe.id,
		name=recipe.name,
		tags=document["tags"],
		items=[
			RecipeItemRead(
				supply_id=item.get("supplyId"),
				name=item.get("name"),
				amount=item.get("amount") or 0,
				unit=item.get("unit") or "",
			)
			for item in document["items"]
		],
		instructions=recipe.instructions or "",
		yield_qty=recipe.yield_qty,
		yield_unit=recipe.yield_unit,
		serving_label=recipe.serving_label,
		total_cost=supplies.recipe_cost(document, supplies_by_id),
		cost_per_serving=supplies.cost_per_serving(document, supplies_by_id),
		created_at=recipe.created_at,
		updated_at=recipe.updated_at,
	)


@router.post("", response_model=RecipeRead, status_code=status.HTTP_201_CREATED)
async def create_recipe(
	payload: RecipeCreate,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_writer),
) -> RecipeRead:
	service = _service(request, db)
	try:
		recipe = await service.create_recipe(user.id, payload)
		by_id = await service.supplies_by_id(user.id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_recipe_read(recipe, by_id)


@router.get("", response_model=list[RecipeRead])
async def list_recipes(
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(get_current_user),
) -> list[RecipeRead]:
	service = _service(request, db)
	try:
		recipes = await service.list_recipes(user.id)
		by_id = await service.supplies_by_id(user.id) if recipes else {}
	except Exception as exc:
		raise _map_error(exc) from exc
	return [_to_recipe_read(recipe, by_id) for recipe in recipes]


@router.get("/{recipe_id}", response_model=RecipeRead)
async def get_recipe(
	recipe_id: uuid.UUID,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(get_current_user),
) -> RecipeRead:
	service = _service(request, db)
	try:
		recipe = await service.get_recipe(user.id, recipe_id)
		by_id = await service.supplies_by_id(user.id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_recipe_read(recipe, by_id)


@router.patch("/{recipe_id}", response_model=RecipeRead)
async def update_recipe(
	recipe_id: uuid.UUID,
	payload: RecipeUpdate,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_writer),
) -> RecipeRead:
	service = _service(request, db)
	try:
		recipe = await service.update_recipe(user.id, recipe_id, payload)
		by_id = await service.supplies_by_id(user.id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_recipe_read(recipe, by_id)


@router.delete("/{recipe_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_recipe(
	recipe_id: uuid.UUID,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_writer),
) -> Response:
	try:
		await _service(request, db).delete_recipe(user.id, recipe_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{recipe_id}/consume", response_model=list[SupplyAuditRead])
async def consume_recipe(
	recipe_id: uuid.UUID,
	payload: ConsumeRequest,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user: User = Depends(require_writer),
) -> list[SupplyAuditRead]:
	try:
		entries = await _service(request, db).consume_recipe(user.id, recipe_id, payload)
	except Exception as exc:
		raise _map_error(exc) from exc
	return [SupplyAuditRead.model_validate(entry) for entry in entries]
