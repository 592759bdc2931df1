"""Margin threshold analysis.

Keeps the products whose margin rate lies strictly below (or above) a
threshold and summarizes them.

NO DATA ACCESS - pure functions only.
"""

from __future__ import annotations

from typing import Any

from pharmakpi.domain.analytics.pricing import margin_pct
from pharmakpi.domain.analytics.records import ProductFacts, ThresholdMode


def _keep(pct: float, seuil: float, mode: ThresholdMode) -> bool:
    # Equality is excluded in both modes
    if mode is ThresholdMode.BELOW:
        return pct < seuil
    return pct > seuil


def analyze_margin(
    products: list[ProductFacts],
    seuil_marge: float,
    mode: ThresholdMode,
    periode: dict[str, str],
) -> dict[str, Any]:
    """Run the margin threshold analysis.

    Products without a current sale price or a current cost are ignored.

    Args:
        products: Candidate products with price, costs and trailing sales
        seuil_marge: Margin rate threshold (%)
        mode: BELOW keeps margin < seuil, ABOVE keeps margin > seuil
        periode: Analysis window bounds echoed back in "criteres"

    Returns:
        Result dict with criteres, produits_trouves, total_produits and resume

    """
    scored: list[tuple[float, dict[str, Any]]] = []
    weighted_margin = 0.0
    ca_total = 0.0
    ventes_totales = 0

    for p in products:
        if p.price is None or p.costs is None:
            continue

        sale = p.price.value
        pct = margin_pct(sale, p.costs.prix_achat_ttc)
        if not _keep(pct, seuil_marge, mode):
            continue

        ventes = p.sales.total
        ca = sale * ventes
        weighted_margin += pct * ca
        ca_total += ca
        ventes_totales += ventes

        promo = p.price.prix_promo_ttc
        row = {
            "ean13": p.ean13,
            "nom": p.nom,
            "prix_achat_ht": round(p.costs.prix_achat_ht, 3),
            "prix_achat_ttc": round(p.costs.prix_achat_ttc, 2),
            "prix_vente_ttc": round(sale, 2),
            "prix_promo_ttc": round(promo, 2) if promo is not None else None,
            "pourcentage_marge_calcule": round(pct, 2),
            "ecart_seuil": round(pct - seuil_marge, 2),
            "ventes_periode": ventes,
            "ca_periode": round(ca, 2),
        }
        scored.append((pct - seuil_marge, row))

    # Farthest from the threshold first
    scored.sort(key=lambda item: item[0], reverse=mode is ThresholdMode.ABOVE)
    rows = [row for _, row in scored]

    marge_moyenne = weighted_margin / ca_total if ca_total > 0 else 0.0

    return {
        "criteres": {
            "seuil_marge": seuil_marge,
            "mode": mode.value,
            "periode_analyse": periode,
        },
        "produits_trouves": rows,
        "total_produits": len(rows),
        "resume": {
            "marge_moyenne": round(marge_moyenne, 2),
            "ca_total": round(ca_total, 2),
            "ventes_totales": ventes_totales,
        },
    }
