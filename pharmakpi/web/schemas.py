"""Pydantic schemas for API requests and responses."""

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pharmakpi.core.config import get_settings
from pharmakpi.domain.analytics.records import ThresholdMode
from pharmakpi.services.resolvers import ProductFilters

DATE_ORDER_MESSAGE = "La date de début doit être antérieure à la date de fin"


def _check_range(value: float | None, low: float, high: float, message: str) -> float | None:
    if value is not None and not (low <= value <= high):
        raise ValueError(message)
    return value


# Shared request parts
class FilterParams(BaseModel):
    """Optional product filters accepted by every analysis."""

    pharmacie_id: int | None = Field(None, gt=0, description="Pharmacy ID")
    fournisseur_id: int | None = Field(None, gt=0, description="Supplier ID (via purchase prices)")
    famille_id: int | None = Field(None, gt=0, description="Product family ID")
    ean13: str | None = Field(None, min_length=1, max_length=13, description="Exact main barcode")

    def filters(self) -> ProductFilters:
        return ProductFilters(
            pharmacie_id=self.pharmacie_id,
            famille_id=self.famille_id,
            ean13=self.ean13,
            fournisseur_id=self.fournisseur_id,
        )


class PeriodParams(FilterParams):
    """Caller period [date_debut, date_fin] (YYYY-MM-DD)."""

    date_debut: date
    date_fin: date

    @model_validator(mode="after")
    def check_dates(self) -> PeriodParams:
        if self.date_debut > self.date_fin:
            raise ValueError(DATE_ORDER_MESSAGE)
        return self


def _parse_mode(value: Any) -> ThresholdMode:
    try:
        return ThresholdMode.parse(value)
    except ValueError as e:
        raise ValueError('Le mode doit être "dessous" ou "dessus"') from e


class ModeParams(FilterParams):
    """Threshold side: "dessous" (below) or "dessus" (above)."""

    mode: ThresholdMode

    @field_validator("mode", mode="before")
    @classmethod
    def check_mode(cls, v: Any) -> ThresholdMode:
        return _parse_mode(v)


# Analyses
class MarginAnalysisRequest(ModeParams):
    seuil_marge: float

    @field_validator("seuil_marge")
    @classmethod
    def check_seuil(cls, v: float) -> float:
        return _check_range(v, 0, 100, "Le seuil de marge doit être entre 0 et 100%")


class StockAnalysisRequest(ModeParams):
    seuil_mois_stock: float

    @field_validator("seuil_mois_stock")
    @classmethod
    def check_seuil(cls, v: float) -> float:
        return _check_range(v, 0, 120, "Le seuil de stock doit être entre 0 et 120 mois")


class ParetoAnalysisRequest(PeriodParams):
    seuil_pareto: float

    @field_validator("seuil_pareto")
    @classmethod
    def check_seuil(cls, v: float) -> float:
        return _check_range(v, 1, 100, "Le seuil Pareto doit être entre 1 et 100%")


class AbcXyzAnalysisRequest(PeriodParams):
    seuil_abc_a: float | None = None
    seuil_abc_b: float | None = None
    seuil_xyz_x: float | None = None
    seuil_xyz_y: float | None = None

    @field_validator("seuil_abc_a")
    @classmethod
    def check_abc_a(cls, v: float | None) -> float | None:
        return _check_range(v, 50, 95, "Le seuil ABC A doit être entre 50 et 95%")

    @field_validator("seuil_abc_b")
    @classmethod
    def check_abc_b(cls, v: float | None) -> float | None:
        return _check_range(v, 85, 99, "Le seuil ABC B doit être entre 85 et 99%")

    @field_validator("seuil_xyz_x")
    @classmethod
    def check_xyz_x(cls, v: float | None) -> float | None:
        return _check_range(v, 0.1, 2.0, "Le seuil XYZ X doit être entre 0.1 et 2.0")

    @field_validator("seuil_xyz_y")
    @classmethod
    def check_xyz_y(cls, v: float | None) -> float | None:
        return _check_range(v, 0.5, 3.0, "Le seuil XYZ Y doit être entre 0.5 et 3.0")

    @model_validator(mode="after")
    def check_threshold_order(self) -> AbcXyzAnalysisRequest:
        settings = get_settings()
        a = self.seuil_abc_a if self.seuil_abc_a is not None else settings.abc_threshold_a
        b = self.seuil_abc_b if self.seuil_abc_b is not None else settings.abc_threshold_b
        x = self.seuil_xyz_x if self.seuil_xyz_x is not None else settings.xyz_threshold_x
        y = self.seuil_xyz_y if self.seuil_xyz_y is not None else settings.xyz_threshold_y
        if a >= b:
            raise ValueError("Le seuil ABC A doit être inférieur au seuil ABC B")
        if x >= y:
            raise ValueError("Le seuil XYZ X doit être inférieur au seuil XYZ Y")
        return self


class SeasonalityAnalysisRequest(FilterParams):
    periode_historique_annees: int | None = None
    seuil_amplitude_forte: float | None = None
    seuil_amplitude_moyenne: float | None = None
    nb_mois_prevision: int | None = None

    @field_validator("periode_historique_annees")
    @classmethod
    def check_years(cls, v: int | None) -> int | None:
        return _check_range(v, 1, 10, "La période historique doit être entre 1 et 10 années")

    @field_validator("seuil_amplitude_forte")
    @classmethod
    def check_forte(cls, v: float | None) -> float | None:
        return _check_range(
            v, 0.5, 5.0, "Le seuil d'amplitude forte doit être entre 0.5 et 5.0"
        )

    @field_validator("seuil_amplitude_moyenne")
    @classmethod
    def check_moyenne(cls, v: float | None) -> float | None:
        return _check_range(
            v, 0.2, 3.0, "Le seuil d'amplitude moyenne doit être entre 0.2 et 3.0"
        )

    @field_validator("nb_mois_prevision")
    @classmethod
    def check_horizon(cls, v: int | None) -> int | None:
        return _check_range(v, 1, 24, "Le nombre de mois de prévision doit être entre 1 et 24")

    @model_validator(mode="after")
    def check_amplitude_order(self) -> SeasonalityAnalysisRequest:
        settings = get_settings()
        forte = self.seuil_amplitude_forte or settings.seasonality_strong_amplitude
        moyenne = self.seuil_amplitude_moyenne or settings.seasonality_medium_amplitude
        if moyenne >= forte:
            raise ValueError(
                "Le seuil amplitude moyenne doit être inférieur au seuil amplitude forte"
            )
        return self


# Period KPIs
class RevenueKpiRequest(PeriodParams):
    pass


class MarginKpiRequest(PeriodParams):
    pass


class EvolutionsRequest(FilterParams):
    date_debut_courante: date
    date_fin_courante: date
    date_debut_comparaison: date
    date_fin_comparaison: date

    @model_validator(mode="after")
    def check_dates(self) -> EvolutionsRequest:
        if self.date_debut_courante > self.date_fin_courante:
            raise ValueError(
                "La date de début de la période courante doit être antérieure à la date de fin"
            )
        if self.date_debut_comparaison > self.date_fin_comparaison:
            raise ValueError(
                "La date de début de la période de comparaison doit être antérieure "
                "à la date de fin"
            )
        return self


# Responses
class ApiResponse(BaseModel):
    """Success envelope."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    data: dict[str, Any]
    sql: str = Field(..., description="Statements issued to compute the result")
    execution_time: int = Field(..., alias="executionTime", description="Milliseconds")
    count: int


class ErrorResponse(BaseModel):
    """Error envelope."""

    success: bool = False
    error: str
