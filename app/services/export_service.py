"""Grow export: CSV summary, supply ledger CSV and full JSON backup."""

from __future__ import annotations

import csv
import io
import uuid
from collections.abc import Iterable, Mapping
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.grow import Grow, GrowNote, GrowPhoto
from app.models.supply import SupplyAudit
from app.schemas.supply import AuditAction
from app.services.grow_analytics import yield_totals
from app.services.grow_service import GrowService
from app.services.strain_service import StrainService
from app.services.supply_service import SupplyService
from app.services.timeutil import format_date, format_money

CSV_HEADER = ("id", "strain", "type", "stage", "status", "created", "wet_yield", "dry_yield", "cost")
AUDIT_CSV_HEADER = ("SupplyID", "Action", "Amount", "Note", "Timestamp")


def _format_weight(value: float) -> str:
	return str(int(value)) if float(value).is_integer() else str(value)


def grows_to_csv(documents: Iterable[Mapping[str, Any]]) -> str:
	buffer = io.StringIO()
	writer = csv.writer(buffer, lineterminator="\n")
	writer.writerow(CSV_HEADER)
	for document in documents:
		wet, dry = yield_totals(document)
		writer.writerow(
			[
				document.get("id") or "",
				document.get("strain") or "",
				document.get("type") or "",
				document.get("stage") or "",
				document.get("status") or "",
				format_date(document.get("createdAt")),
				_format_weight(wet),
				_format_weight(dry),
				format_money(document.get("cost")),
			]
		)
	return buffer.getvalue()


def audits_to_csv(audits: Iterable[SupplyAudit]) -> str:
	buffer = io.StringIO()
	writer = csv.writer(buffer, lineterminator="\n")
	writer.writerow(AUDIT_CSV_HEADER)
	for audit in audits:
		writer.writerow(
			[
				str(audit.supply_id) if audit.supply_id else "",
				audit.action,
				_format_weight(audit.amount or 0),
				audit.note or "",
				audit.created_at.isoformat() if audit.created_at else "",
			]
		)
	return buffer.getvalue()

def to_jsonable(value: Any) -> Any:
	"""Recursively convert timestamps to ISO strings and ids/decimals to JSON types."""
	if isinstance(value, datetime):
		return value.isoformat()
	if isinstance(value, date):
		return value.isoformat()
	if isinstance(value, uuid.UUID):
		return str(value)
	if isinstance(value, Decimal):
		return float(value)
	if isinstance(value, Mapping):
		return {str(key): to_jsonable(item) for key, item in value.items()}
	if isinstance(value, (list, tuple, set)):
		return [to_jsonable(item) for item in value]
	return value


class ExportService:
	def __init__(self, db: AsyncSession):
		self.db = db

	async def export_csv(self, user_id: uuid.UUID) -> str:
		documents = await GrowService(self.db).list_documents(user_id)
		return grows_to_csv(documents)

	async def export_audits_csv(self, user_id: uuid.UUID, action: AuditAction | None = None) -> str:
		audits = await SupplyService(self.db).list_audits(user_id, action=action)
		return audits_to_csv(audits)

	async def export_backup(self, user_id: uuid.UUID) -> dict[str, Any]:
		documents = await GrowService(self.db).list_documents(user_id)
		strains = await StrainService(self.db).list_strains(user_id)

		notes_rows = await self.db.execute(
			select(GrowNote).join(Grow, GrowNote.grow_id == Grow.id).where(Grow.user_id == user_id)
		)
		photos_rows = await self.db.execute(
			select(GrowPhoto).join(Grow, GrowPhoto.grow_id == Grow.id).where(Grow.user_id == user_id)
		)
		supply_service = SupplyService(self.db)
		supplies = await supply_service.list_supplies(user_id)
		recipes = await supply_service.list_recipes(user_id)

		return to_jsonable(
			{
				"exportedAt": datetime.now(UTC),
				"grows": documents,
				"strains": [
					{
						"id": strain.id,
						"name": strain.name,
						"scientificName": strain.scientific_name,
						"photoURL": strain.photo_url,
						"description": strain.description,
						"createdAt": strain.created_at,
					}
					for strain in strains
				],
				"notes": [
					{"id": note.id, "growId": note.grow_id, "stage": note.stage, "text": note.text, "createdAt": note.created_at}
					for note in notes_rows.scalars().all()
				],
				"photos": [
					{
						"id": photo.id,
						"growId": photo.grow_id,
						"stage": photo.stage,
						"url": photo.url,
						"caption": photo.caption,
						"storagePath": photo.storage_path,
						"createdAt": photo.created_at,
					}
					for photo in photos_rows.scalars().all()
				],
				"supplies": [
					{
						**SupplyService.supply_document(supply),
						"reorderLink": supply.reorder_link,
						"createdAt": supply.created_at,
					}
					for supply in supplies
				],
				"recipes": [
					{
						**SupplyService.recipe_document(recipe),
						"instructions": recipe.instructions,
						"servingLabel": recipe.serving_label,
						"createdAt": recipe.created_at,
					}
					for recipe in recipes
				],
			}
		)
