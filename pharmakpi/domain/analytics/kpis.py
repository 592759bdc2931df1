"""Period KPIs (revenue and margin incl. tax) and period comparison.

NO DATA ACCESS - pure functions only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pharmakpi.domain.analytics.records import ProductFacts


@dataclass(frozen=True)
class Change:
    """Relative change between two values; None when it is undefined."""

    value: float | None

    @classmethod
    def between(cls, current: float, previous: float) -> Change:
        """Percentage change from previous to current.

        Examples:
            >>> Change.between(120, 100).value
            20.0
            >>> Change.between(0, 100).value
            -100.0
            >>> Change.between(50, 0).value is None
            True
        """
        if previous == 0:
            return cls(None)
        if current == 0:
            return cls(-100.0)
        return cls((current - previous) / previous * 100)

    def wire_value(self) -> float | str:
        return "N/A" if self.value is None else round(self.value, 2)


@dataclass
class MonthTotals:
    ca: float = 0.0
    marge: float = 0.0
    quantite: int = 0


@dataclass
class PeriodSnapshot:
    """Revenue, margin and units of a period, in total and per "YYYY-MM"."""

    ca: float = 0.0
    marge: float = 0.0
    quantite: int = 0
    by_month: dict[str, MonthTotals] = field(default_factory=dict)

    @property
    def taux_marge(self) -> float:
        return self.marge / self.ca * 100 if self.ca > 0 else 0.0


def _month_rows(by_month: dict[str, float], value_key: str) -> list[dict[str, Any]]:
    return [
        {"mois": key, "annee": int(key[:4]), value_key: round(value, 2)}
        for key, value in sorted(by_month.items())
    ]


def revenue_ttc(
    products: list[ProductFacts],
    periode: dict[str, str],
    filtres: dict[str, Any],
) -> dict[str, Any]:
    """Revenue incl. tax over a period.

    Every sales row of a product having a current sale price contributes
    effective price × quantity.
    """
    total = 0.0
    by_month: dict[str, float] = {}
    contributing = 0
    nb_ventes = 0

    for p in products:
        nb_ventes += len(p.sales.monthly)
        if p.price is None or not p.sales.has_rows:
            continue
        contributing += 1
        price = p.price.value
        for key, qty in p.sales.by_month.items():
            ca = price * qty
            total += ca
            by_month[key] = by_month.get(key, 0.0) + ca

    return {
        "ca_ttc_total": round(total, 2),
        "periode": periode,
        "filtres_appliques": filtres,
        "nb_produits": contributing,
        "nb_ventes": nb_ventes,
        "ca_par_mois": _month_rows(by_month, "ca"),
    }


def margin_ttc(
    products: list[ProductFacts],
    periode: dict[str, str],
    filtres: dict[str, Any],
) -> dict[str, Any]:
    """Margin incl. tax over a period.

    Rows of products having both a current sale price and a current cost
    contribute (effective price - cost incl. tax) × quantity.
    """
    snapshot = period_snapshot(products)
    contributing = sum(
        1 for p in products if p.price is not None and p.costs is not None and p.sales.has_rows
    )
    nb_ventes = sum(len(p.sales.monthly) for p in products)

    return {
        "marge_ttc_total": round(snapshot.marge, 2),
        "ca_ttc_total": round(snapshot.ca, 2),
        "taux_marge_moyen": round(snapshot.taux_marge, 2),
        "periode": periode,
        "filtres_appliques": filtres,
        "nb_produits": contributing,
        "nb_ventes": nb_ventes,
        "marge_par_mois": _month_rows(
            {key: month.marge for key, month in snapshot.by_month.items()}, "marge"
        ),
    }


def period_snapshot(products: list[ProductFacts]) -> PeriodSnapshot:
    """Aggregate revenue, margin and units of products with price and cost."""
    snapshot = PeriodSnapshot()
    for p in products:
        if p.price is None or p.costs is None:
            continue
        price = p.price.value
        unit_margin = price - p.costs.prix_achat_ttc
        for key, qty in p.sales.by_month.items():
            month = snapshot.by_month.setdefault(key, MonthTotals())
            month.ca += price * qty
            month.marge += unit_margin * qty
            month.quantite += qty
            snapshot.ca += price * qty
            snapshot.marge += unit_margin * qty
            snapshot.quantite += qty
    return snapshot


def _indicator(current: float, previous: float, ndigits: int | None = 2) -> dict[str, Any]:
    return {
        "periode_courante": round(current, ndigits) if ndigits is not None else current,
        "periode_comparaison": round(previous, ndigits) if ndigits is not None else previous,
        "evolution_pct": Change.between(current, previous).wire_value(),
    }


def compare_periods(
    current: PeriodSnapshot,
    previous: PeriodSnapshot,
    comparison_start_year: int,
    periode_courante: dict[str, str],
    periode_comparaison: dict[str, str],
) -> dict[str, Any]:
    """Compare two period snapshots.

    Monthly evolutions compare each month of the current period with the
    same month number in `comparison_start_year`.

    Args:
        current: Snapshot of the current period
        previous: Snapshot of the comparison period
        comparison_start_year: Year of the comparison period start
        periode_courante: Current period bounds (echoed back)
        periode_comparaison: Comparison period bounds (echoed back)

    Returns:
        Result dict with both periods, evolutions_globales and
        evolutions_mensuelles

    """
    taux_courant = current.taux_marge
    taux_precedent = previous.taux_marge
    if taux_courant == 0 and taux_precedent == 0:
        points: float | str = "N/A"
    else:
        points = round(taux_courant - taux_precedent, 2)

    mensuelles = []
    for key in sorted(current.by_month):
        month = current.by_month[key]
        other = previous.by_month.get(f"{comparison_start_year:04d}-{key[5:7]}", MonthTotals())
        mensuelles.append(
            {
                "mois": key,
                "ca_evolution_pct": Change.between(month.ca, other.ca).wire_value(),
                "marge_evolution_pct": Change.between(month.marge, other.marge).wire_value(),
                "quantite_evolution_pct": Change.between(
                    month.quantite, other.quantite
                ).wire_value(),
            }
        )

    return {
        "periode_courante": periode_courante,
        "periode_comparaison": periode_comparaison,
        "evolutions_globales": {
            "ca_ttc": _indicator(current.ca, previous.ca),
            "marge_ttc": _indicator(current.marge, previous.marge),
            "taux_marge": {
                "periode_courante": round(taux_courant, 2),
                "periode_comparaison": round(taux_precedent, 2),
                "evolution_points": points,
            },
            "quantite": _indicator(current.quantite, previous.quantite, ndigits=None),
        },
        "evolutions_mensuelles": mensuelles,
    }
