"""Pydantic schemas for the analytics summary endpoint."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field, model_validator


class AnalyticsQuery(BaseModel):
	strain: str | None = None
	date_from: date | None = None
	date_to: date | None = None
	show_all: bool = False

	@model_validator(mode="after")
	def _validate_range(self) -> "AnalyticsQuery":
		if self.date_from and self.date_to and self.date_from > self.date_to:
			raise ValueError("date_from must not be after date_to")
		return self


class StageCount(BaseModel):
	name: str
	value: int


class GrowYield(BaseModel):
	name: str
	wet: float
	dry: float


class StrainYield(BaseModel):
	name: str
	wet: float
	dry: float
	count: int


class GrowCost(BaseModel):
	name: str
	cost: float


class SupplyUsage(BaseModel):
	name: str
	count: int


class MonthCount(BaseModel):
	month: str
	count: int


class ContaminationRate(BaseModel):
	name: str
	rate: float
	bad: int
	total: int


class TimeToStage(BaseModel):
	name: str
	inoc_to_colonized: float = 0
	colonized_to_fruiting: float = 0
	fruiting_to_harvested: float = 0


class OverviewSummary(BaseModel):
	total_active: int = 0
	unique_strains: int = 0
	running_cost: float = 0
	avg_age_days: int = 0


class AnalyticsReport(BaseModel):
	generated_at: datetime
	cached: bool = False
	filters: AnalyticsQuery = Field(default_factory=AnalyticsQuery)
	overview: OverviewSummary = Field(default_factory=OverviewSummary)
	stage_counts: list[StageCount] = Field(default_factory=list)
	yield_by_grow: list[GrowYield] = Field(default_factory=list)
	avg_yield_per_strain: list[StrainYield] = Field(default_factory=list)
	grow_costs: list[GrowCost] = Field(default_factory=list)
	supply_usage: list[SupplyUsage] = Field(default_factory=list)
	stage_transitions: list[MonthCount] = Field(default_factory=list)
	contamination_rate: list[ContaminationRate] = Field(default_factory=list)
	time_to_stage: list[TimeToStage] = Field(default_factory=list)
