"""Stock coverage analysis (months of stock at the trailing sales rate).

Business logic for:
- Months of stock per product (tagged: numeric, out of stock, infinite)
- Threshold annotation and ordering
- Coverage summary (mean cover, out-of-stock and overstock counts)

NO DATA ACCESS - pure functions only.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pharmakpi.domain.analytics.records import ProductFacts, ThresholdMode


class CoverKind(str, Enum):
    NUMERIC = "NUMERIC"
    RUPTURE = "Rupture"
    STOCK_INFINI = "Stock infini"


@dataclass(frozen=True)
class StockCover:
    """Months of stock, or one of the two degenerate cases.

    Attributes:
        kind: NUMERIC, RUPTURE (no stock) or STOCK_INFINI (stock but no sales)
        months: Months of stock, only set when kind is NUMERIC

    """

    kind: CoverKind
    months: float | None = None

    @property
    def is_numeric(self) -> bool:
        return self.kind is CoverKind.NUMERIC

    def wire_value(self) -> float | str:
        """Serialized value: months rounded to 0.1, or the French label."""
        if self.kind is CoverKind.NUMERIC:
            return round(self.months, 1)
        return self.kind.value


def stock_cover(stock_total: int, monthly_avg: float) -> StockCover:
    """Compute months of stock.

    Examples:
        >>> stock_cover(0, 5.0).kind
        <CoverKind.RUPTURE: 'Rupture'>
        >>> stock_cover(10, 0.0).kind
        <CoverKind.STOCK_INFINI: 'Stock infini'>
        >>> stock_cover(30, 10.0).months
        3.0
    """
    if stock_total == 0:
        return StockCover(CoverKind.RUPTURE)
    if monthly_avg == 0:
        return StockCover(CoverKind.STOCK_INFINI)
    return StockCover(CoverKind.NUMERIC, stock_total / monthly_avg)


def meets_threshold(cover: StockCover, seuil: float, mode: ThresholdMode) -> bool:
    """Whether a cover is on the requested side of the threshold.

    An out-of-stock product is below any threshold; an infinite cover is
    above any threshold.
    """
    if cover.kind is CoverKind.RUPTURE:
        return mode is ThresholdMode.BELOW
    if cover.kind is CoverKind.STOCK_INFINI:
        return mode is ThresholdMode.ABOVE
    if mode is ThresholdMode.BELOW:
        return cover.months < seuil
    return cover.months > seuil


def _sort_key(cover: StockCover, seuil: float, mode: ThresholdMode) -> tuple[int, float]:
    if cover.kind is CoverKind.RUPTURE:
        return (0, 0.0)
    if mode is ThresholdMode.BELOW:
        if cover.kind is CoverKind.STOCK_INFINI:
            return (2, 0.0)
        return (1, cover.months - seuil)
    if cover.kind is CoverKind.STOCK_INFINI:
        return (1, 0.0)
    return (2, -(cover.months - seuil))


def analyze_stock(
    products: list[ProductFacts],
    seuil_mois_stock: float,
    mode: ThresholdMode,
    periode: dict[str, str],
    window_months: int = 12,
) -> dict[str, Any]:
    """Run the stock coverage analysis over every candidate product.

    Args:
        products: Candidate products with current stock and trailing sales
        seuil_mois_stock: Threshold in months of stock
        mode: Side of the threshold the caller is interested in
        periode: Trailing window bounds echoed back in "criteres"
        window_months: Divisor turning trailing sales into a monthly average

    Returns:
        Result dict with criteres, produits_trouves (all products, annotated
        with respecte_critere), total_produits and resume

    """
    scored: list[tuple[tuple[int, float], dict[str, Any]]] = []
    numeric_covers: list[float] = []
    rupture = 0
    surstock = 0

    for p in products:
        ventes = p.sales.total
        monthly_avg = ventes / window_months
        cover = stock_cover(p.stock_total, monthly_avg)

        if cover.kind is CoverKind.RUPTURE:
            rupture += 1
            ecart: float | str = "N/A"
        elif cover.kind is CoverKind.STOCK_INFINI:
            surstock += 1
            ecart = "N/A"
        else:
            numeric_covers.append(cover.months)
            if cover.months > seuil_mois_stock * 2:
                surstock += 1
            ecart = round(cover.months - seuil_mois_stock, 1)

        row = {
            "ean13": p.ean13,
            "nom": p.nom,
            "stock_rayon": p.stock_rayon,
            "stock_reserve": p.stock_reserve,
            "stock_total": p.stock_total,
            "ventes_mensuelles_moyennes": round(monthly_avg, 1),
            "mois_stock_calcule": cover.wire_value(),
            "ecart_seuil": ecart,
            "respecte_critere": meets_threshold(cover, seuil_mois_stock, mode),
            "ventes_12_mois": ventes,
            "derniere_vente": p.sales.last_sale_month,
        }
        scored.append((_sort_key(cover, seuil_mois_stock, mode), row))

    scored.sort(key=lambda item: item[0])
    stock_moyen = sum(numeric_covers) / len(numeric_covers) if numeric_covers else 0.0

    return {
        "criteres": {
            "seuil_mois_stock": seuil_mois_stock,
            "mode": mode.value,
            "periode_analyse": periode,
        },
        "produits_trouves": [row for _, row in scored],
        "total_produits": len(scored),
        "resume": {
            "stock_moyen": round(stock_moyen, 1),
            "produits_rupture": rupture,
            "produits_surstock": surstock,
        },
    }
