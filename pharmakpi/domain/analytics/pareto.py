"""Pareto (80/20) revenue concentration analysis.

NO DATA ACCESS - pure functions only.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pharmakpi.domain.analytics.records import ProductFacts


@dataclass
class RevenueLine:
    """Revenue of one product over the period, with its cumulative position."""

    product: ProductFacts
    ca: float
    ca_cumule: float = 0.0
    pourcentage_ca: float = 0.0
    pourcentage_cumule: float = 0.0
    rang: int = 0


def rank_by_revenue(products: list[ProductFacts]) -> tuple[list[RevenueLine], float]:
    """Rank products by revenue (effective price x period units), descending.

    Callers pass only products having a current sale price. Percentages are
    relative to the total over the given products.

    Returns:
        (ranked lines, total revenue)

    """
    lines = [RevenueLine(product=p, ca=p.price.value * p.sales.total) for p in products]
    # Stable sort keeps the resolver order among equal revenues
    lines.sort(key=lambda line: line.ca, reverse=True)

    total = sum(line.ca for line in lines)
    cumul = 0.0
    for i, line in enumerate(lines, start=1):
        cumul += line.ca
        line.rang = i
        line.ca_cumule = cumul
        line.pourcentage_ca = line.ca / total * 100 if total > 0 else 0.0
        line.pourcentage_cumule = cumul / total * 100 if total > 0 else 0.0
    return lines, total


def count_to_threshold(lines: list[RevenueLine], target: float) -> int:
    """Largest k such that the cumulative revenue of the top k is <= target.

    Examples:
        >>> lines, _ = rank_by_revenue([])
        >>> count_to_threshold(lines, 0.0)
        0
    """
    # Absorb float noise so that a cumulated revenue equal to the target counts
    target = round(target, 9)
    count = 0
    for line in lines:
        if round(line.ca_cumule, 9) <= target:
            count = line.rang
    return count


def analyze_pareto(
    products: list[ProductFacts],
    seuil_pareto: float,
    periode: dict[str, str],
) -> dict[str, Any]:
    """Run the Pareto analysis.

    Args:
        products: Candidate products with price, period sales and stock
        seuil_pareto: Share of total revenue to reach (%)
        periode: Caller period echoed back in "criteres"

    Returns:
        Result dict with criteres, analyse and produits_pareto

    """
    eligible = [p for p in products if p.price is not None and p.sales.total > 0]
    lines, total = rank_by_revenue(eligible)
    target = total * seuil_pareto / 100
    nb_seuil = count_to_threshold(lines, target)
    pct_refs = nb_seuil / len(lines) * 100 if lines else 0.0

    return {
        "criteres": {"seuil_pareto": seuil_pareto, "periode": periode},
        "analyse": {
            "ca_total": round(total, 2),
            "ca_seuil": round(target, 2),
            "nb_produits_total": len(lines),
            "nb_produits_seuil": nb_seuil,
            "pourcentage_refs": round(pct_refs, 2),
        },
        "produits_pareto": [
            {
                "rang": line.rang,
                "ean13": line.product.ean13,
                "nom": line.product.nom,
                "ca_periode": round(line.ca, 2),
                "ca_cumule": round(line.ca_cumule, 2),
                "pourcentage_ca": round(line.pourcentage_ca, 2),
                "pourcentage_cumule": round(line.pourcentage_cumule, 2),
                "ventes_periode": line.product.sales.total,
                "stock_actuel": line.product.stock_total,
            }
            for line in lines
        ],
    }
