"""Strain reference CRUD service."""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.strain import Strain
from app.schemas.strain import StrainCreate, StrainUpdate


class StrainService:
	def __init__(self, db: AsyncSession):
		self.db = db

	async def create_strain(self, user_id: uuid.UUID, payload: StrainCreate) -> Strain:
		name = payload.name.strip()
		await self._ensure_name_available(user_id, name)
		strain = Strain(
			user_id=user_id,
			name=name,
			scientific_name=payload.scientific_name,
			photo_url=payload.photo_url,
			description=payload.description,
		)
		self.db.add(strain)
		await self.db.flush()
		await self.db.refresh(strain)
		return strain

	async def list_strains(self, user_id: uuid.UUID) -> list[Strain]:
		stmt = select(Strain).where(Strain.user_id == user_id).order_by(Strain.name.asc())
		rows = await self.db.execute(stmt)
		return list(rows.scalars().all())

	async def get_strain(self, user_id: uuid.UUID, strain_id: uuid.UUID) -> Strain:
		stmt = select(Strain).where(Strain.id == strain_id, Strain.user_id == user_id)
		row = await self.db.execute(stmt)
		strain = row.scalar_one_or_none()
		if strain is None:
			raise LookupError(f"Strain {strain_id} not found")
		return strain

	async def update_strain(self, user_id: uuid.UUID, strain_id: uuid.UUID, payload: StrainUpdate) -> Strain:
		strain = await self.get_strain(user_id, strain_id)
		fields = payload.model_dump(exclude_unset=True)
		if "name" in fields:
			if fields["name"] is None:
				raise ValueError("name must not be null")
			name = fields["name"].strip()
			if name != strain.name:
				await self._ensure_name_available(user_id, name)
			fields["name"] = name
		for key, value in fields.items():
			setattr(strain, key, value)
		await self.db.flush()
		await self.db.refresh(strain)
		return strain

	async def delete_strain(self, user_id: uuid.UUID, strain_id: uuid.UUID) -> None:
		strain = await self.get_strain(user_id, strain_id)
		await self.db.delete(strain)
		await self.db.flush()

	async def _ensure_name_available(self, user_id: uuid.UUID, name: str) -> None:
		stmt = select(Strain.id).where(Strain.user_id == user_id, Strain.name == name)
		row = await self.db.execute(stmt)
		if row.scalar_one_or_none() is not None:
			raise ValueError(f"strain {name!r} already exists")
