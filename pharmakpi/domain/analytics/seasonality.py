"""Seasonality detection and short-horizon demand forecast.

Business logic for calculating:
- Monthly seasonal coefficients (month average / annual average)
- Seasonality strength from the coefficient amplitude
- Year-over-year trend
- Monthly forecast with recommended stock bounds

NO DATA ACCESS - pure functions only. Data access happens in services layer.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any

from pharmakpi.domain.analytics.periods import month_key, month_name
from pharmakpi.domain.analytics.records import ProductFacts

WINTER_MONTHS = (11, 12, 1, 2)
SUMMER_MONTHS = (6, 7, 8)
WEAK_AMPLITUDE = 0.3
TREND_REMARK_PCT = 5.0
TOP_SIZE = 5


class SeasonalityType(str, Enum):
    FORTE = "FORTE"
    MOYENNE = "MOYENNE"
    FAIBLE = "FAIBLE"
    AUCUNE = "AUCUNE"


class ForecastConfidence(str, Enum):
    HIGH = "ELEVEE"
    MEDIUM = "MOYENNE"
    LOW = "FAIBLE"


class SurveillanceLevel(str, Enum):
    CRITIQUE = "CRITIQUE"
    IMPORTANT = "IMPORTANT"
    STANDARD = "STANDARD"
    MINIMAL = "MINIMAL"


@dataclass(frozen=True)
class SeasonalProfile:
    """Seasonal profile of one product (unrounded)."""

    monthly_avg: tuple[float, ...]
    annual_avg: float
    coefficients: tuple[float, ...]
    peak_month: int
    trough_month: int
    amplitude: float

    @property
    def reference_volume(self) -> float:
        """Sum of the twelve monthly averages (a typical year of sales)."""
        return sum(self.monthly_avg)


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _years_before(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        # 29 February in a non-leap target year
        return day.replace(year=day.year - years, day=28)


def coefficient_interpretation(coefficient: float) -> str:
    """Label a monthly coefficient.

    Examples:
        >>> coefficient_interpretation(1.6)
        'Pic très fort (+50%)'
        >>> coefficient_interpretation(1.0)
        'Normal'
    """
    if coefficient >= 1.5:
        return "Pic très fort (+50%)"
    if coefficient >= 1.2:
        return "Pic modéré (+20%)"
    if coefficient >= 0.8:
        return "Normal"
    if coefficient >= 0.5:
        return "Creux modéré (-20%)"
    return "Creux très fort (-50%)"


def seasonal_profile(by_month: dict[str, int]) -> SeasonalProfile:
    """Compute monthly averages and seasonal coefficients.

    Args:
        by_month: "YYYY-MM" -> quantity over the history window

    Returns:
        SeasonalProfile; coefficients are all 1.0 when nothing was sold

    """
    per_month: dict[int, list[int]] = {m: [] for m in range(1, 13)}
    for key, qty in by_month.items():
        per_month[int(key[5:7])].append(qty)

    monthly_avg = tuple(
        sum(values) / len(values) if values else 0.0 for values in per_month.values()
    )
    annual_avg = sum(monthly_avg) / 12
    coefficients = tuple(
        avg / annual_avg if annual_avg > 0 else 1.0 for avg in monthly_avg
    )

    # index() returns the earliest month on ties
    peak = coefficients.index(max(coefficients)) + 1
    trough = coefficients.index(min(coefficients)) + 1
    return SeasonalProfile(
        monthly_avg=monthly_avg,
        annual_avg=annual_avg,
        coefficients=coefficients,
        peak_month=peak,
        trough_month=trough,
        amplitude=max(coefficients) - min(coefficients),
    )


def seasonality_type(amplitude: float, seuil_forte: float, seuil_moyenne: float) -> SeasonalityType:
    if amplitude >= seuil_forte:
        return SeasonalityType.FORTE
    if amplitude >= seuil_moyenne:
        return SeasonalityType.MOYENNE
    if amplitude >= WEAK_AMPLITUDE:
        return SeasonalityType.FAIBLE
    return SeasonalityType.AUCUNE


def annual_trend_pct(by_month: dict[str, int], first_year: int, last_year: int) -> float:
    """Average yearly growth (%) between the first and last years of the window.

    Years without sales rows count as zero. Returns 0 for a single-year
    window or a zero first-year total.

    Examples:
        >>> annual_trend_pct({"2022-01": 100, "2023-01": 120, "2024-01": 50}, 2022, 2024)
        -25.0
    """
    totals = dict.fromkeys(range(first_year, last_year + 1), 0)
    for key, qty in by_month.items():
        year = int(key[:4])
        if year in totals:
            totals[year] += qty

    if len(totals) < 2 or totals[first_year] == 0:
        return 0.0
    return (totals[last_year] - totals[first_year]) / totals[first_year] * 100 / (len(totals) - 1)


def _confidence(kind: SeasonalityType) -> ForecastConfidence:
    if kind in (SeasonalityType.FORTE, SeasonalityType.MOYENNE):
        return ForecastConfidence.HIGH
    if kind is SeasonalityType.FAIBLE:
        return ForecastConfidence.MEDIUM
    return ForecastConfidence.LOW


def forecast(
    profile: SeasonalProfile,
    trend_pct: float,
    kind: SeasonalityType,
    now: date | datetime,
    horizon: int,
) -> list[dict[str, Any]]:
    """Forecast the next `horizon` months after the month of `now`.

    projected = annual_avg × coefficient[month] × (1 + trend)^(i/12)
    Stock bounds cover half a month and one and a half months of demand.
    """
    confidence = _confidence(kind)
    growth = 1 + trend_pct / 100
    rows = []
    for i in range(1, horizon + 1):
        index = now.year * 12 + (now.month - 1) + i
        year, month = index // 12, index % 12 + 1
        projected = profile.annual_avg * profile.coefficients[month - 1] * growth ** (i / 12)
        rows.append(
            {
                "mois": month_key(year, month),
                "annee": year,
                "ventes_prevues": _round_half_up(projected),
                "stock_recommande_mini": math.ceil(projected * 0.5),
                "stock_recommande_maxi": math.ceil(projected * 1.5),
                "confiance_prevision": confidence.value,
            }
        )
    return rows


def recommendations(
    kind: SeasonalityType, peak_name: str, trend_pct: float
) -> tuple[list[str], SurveillanceLevel]:
    """Management recommendations and surveillance level for a profile."""
    if kind is SeasonalityType.FORTE:
        recs = [
            "Anticipation obligatoire des pics saisonniers",
            f"Stock renforcé avant {peak_name}",
            f"Déstockage programmé après {peak_name}",
        ]
        level = SurveillanceLevel.CRITIQUE
    elif kind is SeasonalityType.MOYENNE:
        recs = ["Ajustement stock selon saison", "Surveillance mensuelle recommandée"]
        level = SurveillanceLevel.IMPORTANT
    elif kind is SeasonalityType.FAIBLE:
        recs = ["Légère adaptation saisonnière"]
        level = SurveillanceLevel.STANDARD
    else:
        recs = ["Gestion standard toute l'année"]
        level = SurveillanceLevel.MINIMAL

    if trend_pct > TREND_REMARK_PCT:
        recs.append(f"Tendance croissante forte (+{trend_pct:.1f}%/an)")
    elif trend_pct < -TREND_REMARK_PCT:
        recs.append(f"Tendance décroissante (-{abs(trend_pct):.1f}%/an)")
    return recs, level


def _month_entry(profile: SeasonalProfile, month: int) -> dict[str, Any]:
    coefficient = profile.coefficients[month - 1]
    return {
        "mois": month,
        "nom_mois": month_name(month),
        "coefficient": round(coefficient, 2),
        "interpretation": coefficient_interpretation(coefficient),
    }


def analyze_product(
    p: ProductFacts,
    now: date | datetime,
    seuil_forte: float,
    seuil_moyenne: float,
    horizon: int,
    nb_annees: int = 3,
) -> tuple[dict[str, Any], SeasonalProfile]:
    """Seasonality record of one product (which must have sales rows)."""
    profile = seasonal_profile(p.sales.by_month)
    kind = seasonality_type(profile.amplitude, seuil_forte, seuil_moyenne)
    trend = annual_trend_pct(p.sales.by_month, now.year - nb_annees, now.year)
    recs, level = recommendations(kind, month_name(profile.peak_month), trend)

    coefficients = []
    for month in range(1, 13):
        entry = _month_entry(profile, month)
        entry["ventes_moyennes"] = round(profile.monthly_avg[month - 1], 1)
        coefficients.append(entry)

    record = {
        "ean13": p.ean13,
        "nom": p.nom,
        "type_saisonnalite": kind.value,
        "amplitude_saisonniere": round(profile.amplitude, 2),
        "pic_saisonnier": _month_entry(profile, profile.peak_month),
        "creux_saisonnier": _month_entry(profile, profile.trough_month),
        "coefficients_mensuels": coefficients,
        "ventes_moyennes_annuelles": round(profile.annual_avg, 1),
        "ventes_periode_reference": round(profile.reference_volume, 1),
        "stock_actuel": p.stock_total,
        "tendance_annuelle": round(trend, 1),
        "previsions_prochains_mois": forecast(profile, trend, kind, now, horizon),
        "recommandations_gestion": recs,
        "niveau_surveillance": level.value,
    }
    return record, profile


def analyze_seasonality(
    products: list[ProductFacts],
    now: date | datetime,
    nb_annees: int = 3,
    seuil_forte: float = 1.5,
    seuil_moyenne: float = 0.8,
    horizon: int = 6,
) -> dict[str, Any]:
    """Run the seasonality analysis.

    Args:
        products: Candidate products with sales over the history window
        now: Evaluation instant (history ends and forecast starts here)
        nb_annees: Years of history before the current year
        seuil_forte: Minimum amplitude of a FORTE profile
        seuil_moyenne: Minimum amplitude of a MOYENNE profile
        horizon: Forecast horizon in months

    Returns:
        Result dict with criteres, synthese, produits_saisonniers and
        top_saisonniers

    """
    analysed: list[tuple[dict[str, Any], SeasonalProfile]] = [
        analyze_product(p, now, seuil_forte, seuil_moyenne, horizon, nb_annees)
        for p in products
        if p.sales.has_rows
    ]
    records = [record for record, _ in analysed]

    repartition = {kind.value.lower(): 0 for kind in SeasonalityType}
    for record in records:
        repartition[record["type_saisonnalite"].lower()] += 1

    watched = sum(
        1
        for record in records
        if record["niveau_surveillance"]
        in (SurveillanceLevel.CRITIQUE.value, SurveillanceLevel.IMPORTANT.value)
    )

    def top(items, key):
        return [record for record, _ in sorted(items, key=key, reverse=True)[:TOP_SIZE]]

    forte = [a for a in analysed if a[0]["type_saisonnalite"] == SeasonalityType.FORTE.value]
    marked = [
        a
        for a in analysed
        if a[0]["type_saisonnalite"] in (SeasonalityType.FORTE.value, SeasonalityType.MOYENNE.value)
    ]
    winter = [a for a in analysed if a[1].peak_month in WINTER_MONTHS]
    summer = [a for a in analysed if a[1].peak_month in SUMMER_MONTHS]

    def peak(a):
        return a[1].coefficients[a[1].peak_month - 1]

    today = now.date() if isinstance(now, datetime) else now
    start = _years_before(today, nb_annees)

    return {
        "criteres": {
            "periode_historique": {
                "debut": start.isoformat(),
                "fin": today.isoformat(),
                "nb_annees": nb_annees,
            },
            "seuils_amplitude": {"forte": seuil_forte, "moyenne": seuil_moyenne},
            "nb_mois_prevision": horizon,
        },
        "synthese": {
            "nb_produits_total": len(records),
            "repartition_saisonnalite": repartition,
            "produits_forte_saisonnalite": repartition["forte"],
            "produits_surveillance_critique": watched,
        },
        "produits_saisonniers": records,
        "top_saisonniers": {
            "plus_forte_amplitude": top(forte, lambda a: a[1].amplitude),
            "pics_hiver": top(winter, peak),
            "pics_ete": top(summer, peak),
            "plus_impactants_ca": top(marked, lambda a: a[1].reference_volume),
        },
    }
