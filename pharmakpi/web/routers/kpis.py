"""KPI and analysis API endpoints."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter

from pharmakpi.services import analyses
from pharmakpi.services.analyses import AnalysisResult
from pharmakpi.web.deps import DBSession
from pharmakpi.web.schemas import (
    AbcXyzAnalysisRequest,
    ApiResponse,
    EvolutionsRequest,
    MarginAnalysisRequest,
    MarginKpiRequest,
    ParetoAnalysisRequest,
    RevenueKpiRequest,
    SeasonalityAnalysisRequest,
    StockAnalysisRequest,
)

router = APIRouter()


def _envelope(result: AnalysisResult) -> ApiResponse:
    return ApiResponse(
        data=result.data,
        sql=result.metadata.sql,
        execution_time=result.metadata.execution_time_ms,
        count=result.metadata.count,
    )


@router.post("/analyse-marge", response_model=ApiResponse)
def analyse_marge(body: MarginAnalysisRequest, db: DBSession) -> ApiResponse:
    """Products whose margin rate is below/above a threshold (trailing 12 months)."""
    result = analyses.run_margin_analysis(
        db,
        seuil_marge=body.seuil_marge,
        mode=body.mode,
        filters=body.filters(),
        now=datetime.now(),
    )
    return _envelope(result)


@router.post("/analyse-stock", response_model=ApiResponse)
def analyse_stock(body: StockAnalysisRequest, db: DBSession) -> ApiResponse:
    """Months of stock of every product, annotated against a threshold.

    The full product list is returned; `respecte_critere` flags the products
    on the requested side of the threshold.
    """
    result = analyses.run_stock_analysis(
        db,
        seuil_mois_stock=body.seuil_mois_stock,
        mode=body.mode,
        filters=body.filters(),
        now=datetime.now(),
    )
    return _envelope(result)


@router.post("/analyse-pareto", response_model=ApiResponse)
def analyse_pareto(body: ParetoAnalysisRequest, db: DBSession) -> ApiResponse:
    """Revenue concentration (share of references making seuil_pareto % of revenue)."""
    result = analyses.run_pareto_analysis(
        db,
        seuil_pareto=body.seuil_pareto,
        date_debut=body.date_debut,
        date_fin=body.date_fin,
        filters=body.filters(),
        now=datetime.now(),
    )
    return _envelope(result)


@router.post("/analyse-abc-xyz", response_model=ApiResponse)
def analyse_abc_xyz(body: AbcXyzAnalysisRequest, db: DBSession) -> ApiResponse:
    """ABC (revenue) x XYZ (regularity) matrix with management strategies."""
    result = analyses.run_abc_xyz_analysis(
        db,
        date_debut=body.date_debut,
        date_fin=body.date_fin,
        filters=body.filters(),
        now=datetime.now(),
        seuil_abc_a=body.seuil_abc_a,
        seuil_abc_b=body.seuil_abc_b,
        seuil_xyz_x=body.seuil_xyz_x,
        seuil_xyz_y=body.seuil_xyz_y,
    )
    return _envelope(result)


@router.post("/analyse-saisonnalite", response_model=ApiResponse)
def analyse_saisonnalite(body: SeasonalityAnalysisRequest, db: DBSession) -> ApiResponse:
    """Seasonal coefficients, trend and forecast per product."""
    result = analyses.run_seasonality_analysis(
        db,
        filters=body.filters(),
        now=datetime.now(),
        periode_historique_annees=body.periode_historique_annees,
        seuil_amplitude_forte=body.seuil_amplitude_forte,
        seuil_amplitude_moyenne=body.seuil_amplitude_moyenne,
        nb_mois_prevision=body.nb_mois_prevision,
    )
    return _envelope(result)


@router.post("/ca-ttc", response_model=ApiResponse)
def ca_ttc(body: RevenueKpiRequest, db: DBSession) -> ApiResponse:
    """Revenue incl. tax over a period."""
    result = analyses.run_revenue_kpi(
        db,
        date_debut=body.date_debut,
        date_fin=body.date_fin,
        filters=body.filters(),
        now=datetime.now(),
    )
    return _envelope(result)


@router.post("/marge-ttc", response_model=ApiResponse)
def marge_ttc(body: MarginKpiRequest, db: DBSession) -> ApiResponse:
    """Margin incl. tax over a period."""
    result = analyses.run_margin_kpi(
        db,
        date_debut=body.date_debut,
        date_fin=body.date_fin,
        filters=body.filters(),
        now=datetime.now(),
    )
    return _envelope(result)


@router.post("/evolutions", response_model=ApiResponse)
def evolutions(body: EvolutionsRequest, db: DBSession) -> ApiResponse:
    """Revenue, margin and units of a period compared with another."""
    result = analyses.run_evolutions(
        db,
        date_debut_courante=body.date_debut_courante,
        date_fin_courante=body.date_fin_courante,
        date_debut_comparaison=body.date_debut_comparaison,
        date_fin_comparaison=body.date_fin_comparaison,
        filters=body.filters(),
        now=datetime.now(),
    )
    return _envelope(result)
