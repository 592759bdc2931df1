"""Analysis orchestration.

One run_* function per analysis: resolve the data through the repository,
hand it to the pure analyzers, and wrap the result with diagnostics
(equivalent SQL, execution time, count). Repository failures surface as
AnalysisError.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pharmakpi.core.config import get_settings
from pharmakpi.core.metrics import (
    analysis_duration_seconds,
    analysis_products_evaluated,
    analysis_runs_total,
)
from pharmakpi.db.repository import PharmacyRepository
from pharmakpi.domain.analytics.abc_xyz import classify_abc_xyz
from pharmakpi.domain.analytics.kpis import compare_periods, margin_ttc, period_snapshot, revenue_ttc
from pharmakpi.domain.analytics.margin import analyze_margin
from pharmakpi.domain.analytics.pareto import analyze_pareto
from pharmakpi.domain.analytics.periods import MonthWindow
from pharmakpi.domain.analytics.records import ThresholdMode
from pharmakpi.domain.analytics.seasonality import analyze_seasonality
from pharmakpi.domain.analytics.stock_cover import analyze_stock
from pharmakpi.services.resolvers import (
    ProductFilters,
    aggregate_sales,
    assemble_facts,
    resolve_prices,
    resolve_products,
    resolve_stock,
)

logger = logging.getLogger(__name__)


class AnalysisError(RuntimeError):
    """An analysis could not complete because the store failed."""

    def __init__(self, analysis: str, message: str):
        super().__init__(message)
        self.analysis = analysis


@dataclass(frozen=True)
class QueryMetadata:
    """Diagnostics returned alongside every result."""

    sql: str
    execution_time_ms: int
    count: int


@dataclass(frozen=True)
class AnalysisResult:
    data: dict[str, Any]
    metadata: QueryMetadata


def _periode(debut: date, fin: date) -> dict[str, str]:
    return {"debut": debut.isoformat(), "fin": fin.isoformat()}


def _execute(
    analysis: str,
    repo: PharmacyRepository,
    build: Callable[[], tuple[dict[str, Any], int]],
) -> AnalysisResult:
    """Run `build` with timing, metrics, logging and error wrapping.

    Args:
        analysis: Analysis name (metric label)
        repo: Repository used by `build` (its statement log becomes the SQL)
        build: Returns (result data, number of candidate products)

    Raises:
        AnalysisError: If the repository raised a SQLAlchemyError

    """
    start = time.perf_counter()
    try:
        data, evaluated = build()
    except SQLAlchemyError as e:
        analysis_runs_total.labels(analysis=analysis, status="failed").inc()
        logger.error(
            "analysis_failed",
            extra={"analysis": analysis, "error": str(e), "error_type": type(e).__name__},
            exc_info=True,
        )
        raise AnalysisError(analysis, str(e)) from e

    duration = time.perf_counter() - start
    analysis_runs_total.labels(analysis=analysis, status="success").inc()
    analysis_duration_seconds.labels(analysis=analysis).observe(duration)
    analysis_products_evaluated.labels(analysis=analysis).observe(evaluated)

    execution_ms = int(round(duration * 1000))
    logger.info(
        "analysis_completed",
        extra={
            "analysis": analysis,
            "products": evaluated,
            "statements": len(repo.statements),
            "execution_time_ms": execution_ms,
        },
    )
    return AnalysisResult(
        data=data,
        metadata=QueryMetadata(sql=repo.sql_log(), execution_time_ms=execution_ms, count=1),
    )


def run_margin_analysis(
    db: Session,
    *,
    seuil_marge: float,
    mode: ThresholdMode | str,
    filters: ProductFilters,
    now: datetime,
) -> AnalysisResult:
    """Products whose margin rate is below/above a threshold.

    Sales are taken over the trailing window ending at the month of `now`.
    """
    repo = PharmacyRepository(db)
    threshold_mode = ThresholdMode.parse(mode)
    months = get_settings().trailing_window_months
    window = MonthWindow.trailing(now, months)

    def build():
        products = resolve_products(repo, filters)
        prices, costs = resolve_prices(repo, products, now)
        sales = aggregate_sales(repo, products, window)
        facts = assemble_facts(products, prices=prices, costs=costs, sales=sales)
        data = analyze_margin(facts, seuil_marge, threshold_mode, window.label())
        return data, len(products)

    return _execute("marge", repo, build)


def run_stock_analysis(
    db: Session,
    *,
    seuil_mois_stock: float,
    mode: ThresholdMode | str,
    filters: ProductFilters,
    now: datetime,
) -> AnalysisResult:
    """Months of stock of every candidate product, annotated against a threshold."""
    repo = PharmacyRepository(db)
    threshold_mode = ThresholdMode.parse(mode)
    months = get_settings().trailing_window_months
    window = MonthWindow.trailing(now, months)

    def build():
        products = resolve_products(repo, filters)
        sales = aggregate_sales(repo, products, window)
        stock = resolve_stock(repo, products)
        facts = assemble_facts(products, sales=sales, stock=stock)
        data = analyze_stock(facts, seuil_mois_stock, threshold_mode, window.label(), months)
        return data, len(products)

    return _execute("stock", repo, build)


def run_pareto_analysis(
    db: Session,
    *,
    seuil_pareto: float,
    date_debut: date,
    date_fin: date,
    filters: ProductFilters,
    now: datetime,
) -> AnalysisResult:
    """Revenue concentration over the caller period."""
    repo = PharmacyRepository(db)
    window = MonthWindow.from_dates(date_debut, date_fin)

    def build():
        products = resolve_products(repo, filters)
        prices, _ = resolve_prices(repo, products, now, with_costs=False)
        sales = aggregate_sales(repo, products, window)
        stock = resolve_stock(repo, products)
        facts = assemble_facts(products, prices=prices, sales=sales, stock=stock)
        data = analyze_pareto(facts, seuil_pareto, _periode(date_debut, date_fin))
        return data, len(products)

    return _execute("pareto", repo, build)


def run_abc_xyz_analysis(
    db: Session,
    *,
    date_debut: date,
    date_fin: date,
    filters: ProductFilters,
    now: datetime,
    seuil_abc_a: float | None = None,
    seuil_abc_b: float | None = None,
    seuil_xyz_x: float | None = None,
    seuil_xyz_y: float | None = None,
) -> AnalysisResult:
    """ABC (revenue) x XYZ (regularity) classification over the caller period."""
    settings = get_settings()
    repo = PharmacyRepository(db)
    window = MonthWindow.from_dates(date_debut, date_fin)

    def build():
        products = resolve_products(repo, filters)
        prices, _ = resolve_prices(repo, products, now, with_costs=False)
        sales = aggregate_sales(repo, products, window)
        stock = resolve_stock(repo, products)
        facts = assemble_facts(products, prices=prices, sales=sales, stock=stock)
        data = classify_abc_xyz(
            facts,
            _periode(date_debut, date_fin),
            seuil_a=seuil_abc_a if seuil_abc_a is not None else settings.abc_threshold_a,
            seuil_b=seuil_abc_b if seuil_abc_b is not None else settings.abc_threshold_b,
            seuil_x=seuil_xyz_x if seuil_xyz_x is not None else settings.xyz_threshold_x,
            seuil_y=seuil_xyz_y if seuil_xyz_y is not None else settings.xyz_threshold_y,
        )
        return data, len(products)

    return _execute("abc_xyz", repo, build)


def run_seasonality_analysis(
    db: Session,
    *,
    filters: ProductFilters,
    now: datetime,
    periode_historique_annees: int | None = None,
    seuil_amplitude_forte: float | None = None,
    seuil_amplitude_moyenne: float | None = None,
    nb_mois_prevision: int | None = None,
) -> AnalysisResult:
    """Seasonal profile and forecast of every product with sales history."""
    settings = get_settings()
    repo = PharmacyRepository(db)
    years = periode_historique_annees or settings.seasonality_history_years
    forte = seuil_amplitude_forte or settings.seasonality_strong_amplitude
    moyenne = seuil_amplitude_moyenne or settings.seasonality_medium_amplitude
    horizon = nb_mois_prevision or settings.seasonality_forecast_months
    window = MonthWindow.years(now.year - years, now.year)

    def build():
        products = resolve_products(repo, filters)
        sales = aggregate_sales(repo, products, window)
        stock = resolve_stock(repo, products)
        facts = assemble_facts(products, sales=sales, stock=stock)
        data = analyze_seasonality(facts, now, years, forte, moyenne, horizon)
        return data, len(products)

    return _execute("saisonnalite", repo, build)


def run_revenue_kpi(
    db: Session,
    *,
    date_debut: date,
    date_fin: date,
    filters: ProductFilters,
    now: datetime,
) -> AnalysisResult:
    """Revenue incl. tax over the caller period, by month."""
    repo = PharmacyRepository(db)
    window = MonthWindow.from_dates(date_debut, date_fin)

    def build():
        products = resolve_products(repo, filters)
        prices, _ = resolve_prices(repo, products, now, with_costs=False)
        sales = aggregate_sales(repo, products, window)
        facts = assemble_facts(products, prices=prices, sales=sales)
        data = revenue_ttc(facts, _periode(date_debut, date_fin), filters.applied())
        return data, len(products)

    return _execute("ca_ttc", repo, build)


def run_margin_kpi(
    db: Session,
    *,
    date_debut: date,
    date_fin: date,
    filters: ProductFilters,
    now: datetime,
) -> AnalysisResult:
    """Margin incl. tax over the caller period, by month."""
    repo = PharmacyRepository(db)
    window = MonthWindow.from_dates(date_debut, date_fin)

    def build():
        products = resolve_products(repo, filters)
        prices, costs = resolve_prices(repo, products, now)
        sales = aggregate_sales(repo, products, window)
        facts = assemble_facts(products, prices=prices, costs=costs, sales=sales)
        data = margin_ttc(facts, _periode(date_debut, date_fin), filters.applied())
        return data, len(products)

    return _execute("marge_ttc", repo, build)


def run_evolutions(
    db: Session,
    *,
    date_debut_courante: date,
    date_fin_courante: date,
    date_debut_comparaison: date,
    date_fin_comparaison: date,
    filters: ProductFilters,
    now: datetime,
) -> AnalysisResult:
    """Compare revenue, margin and units between two periods."""
    repo = PharmacyRepository(db)
    current_window = MonthWindow.from_dates(date_debut_courante, date_fin_courante)
    previous_window = MonthWindow.from_dates(date_debut_comparaison, date_fin_comparaison)

    def build():
        products = resolve_products(repo, filters)
        prices, costs = resolve_prices(repo, products, now)
        current_sales = aggregate_sales(repo, products, current_window)
        previous_sales = aggregate_sales(repo, products, previous_window)

        current = period_snapshot(
            assemble_facts(products, prices=prices, costs=costs, sales=current_sales)
        )
        previous = period_snapshot(
            assemble_facts(products, prices=prices, costs=costs, sales=previous_sales)
        )
        data = compare_periods(
            current,
            previous,
            date_debut_comparaison.year,
            _periode(date_debut_courante, date_fin_courante),
            _periode(date_debut_comparaison, date_fin_comparaison),
        )
        return data, len(products)

    return _execute("evolutions", repo, build)
