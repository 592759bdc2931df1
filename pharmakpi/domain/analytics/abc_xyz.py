"""ABC/XYZ cross-classification of products.

- ABC ranks products by their contribution to cumulative revenue.
- XYZ ranks products by the regularity of their monthly sales
  (coefficient of variation).
- The 3x3 matrix cell drives a stock management strategy.

NO DATA ACCESS - pure functions only.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pharmakpi.domain.analytics.pareto import rank_by_revenue
from pharmakpi.domain.analytics.records import ProductFacts

# CV reported when the mean monthly quantity is 0
CV_NO_SALES = 999.0


@dataclass(frozen=True)
class CellStrategy:
    """Management strategy attached to a matrix cell."""

    strategy: str
    actions: tuple[str, ...]


class MatrixCell(Enum):
    """The nine ABC x XYZ cells and their strategy."""

    AX = CellStrategy(
        "Stock de sécurité élevé - Priorité absolue",
        ("Stock mini = 2 mois", "Suivi quotidien", "Fournisseur de secours"),
    )
    AY = CellStrategy(
        "Stock adaptatif avec surveillance renforcée",
        ("Stock mini = 1.5 mois", "Suivi hebdomadaire", "Anticipation saisonnière"),
    )
    AZ = CellStrategy(
        "Gestion au plus juste avec vigilance",
        ("Stock mini = 3 semaines", "Commandes fréquentes", "Analyser causes irrégularité"),
    )
    BX = CellStrategy(
        "Gestion standard optimisée",
        ("Stock mini = 1 mois", "Suivi mensuel", "Automatisation possible"),
    )
    BY = CellStrategy("Gestion standard", ("Stock mini = 3 semaines", "Suivi mensuel"))
    BZ = CellStrategy("Gestion réactive", ("Stock mini = 2 semaines", "Commandes à la demande"))
    CX = CellStrategy(
        "Automatisation complète recommandée",
        ("Stock mini = 2 semaines", "Commandes automatiques", "Suivi trimestriel"),
    )
    CY = CellStrategy("Gestion minimale", ("Stock mini = 1 semaine", "Suivi semestriel"))
    CZ = CellStrategy(
        "Candidats au déréférencement",
        ("Analyser utilité réelle", "Arrêt progressif si possible", "Stock minimal"),
    )

    @classmethod
    def of(cls, abc: str, xyz: str) -> MatrixCell:
        return cls[f"{abc}{xyz}"]


XYZ_INTERPRETATIONS = {
    "X": "Ventes très régulières et prévisibles",
    "Y": "Ventes moyennement prévisibles",
    "Z": "Ventes imprévisibles ou sporadiques",
}


def abc_class(pourcentage_cumule: float, seuil_a: float, seuil_b: float) -> str:
    """ABC class from the cumulative revenue percentage (bounds inclusive).

    Examples:
        >>> abc_class(80.0, 80, 95)
        'A'
        >>> abc_class(95.01, 80, 95)
        'C'
    """
    # Absorb float noise so that an exact 80.00% lands in A
    pct = round(pourcentage_cumule, 9)
    if pct <= seuil_a:
        return "A"
    if pct <= seuil_b:
        return "B"
    return "C"


def variability(quantities: list[int]) -> tuple[float, float, float]:
    """Mean, population standard deviation and coefficient of variation.

    Returns:
        (mean, stdev, cv); cv is CV_NO_SALES when the mean is 0

    """
    if not quantities:
        return 0.0, 0.0, CV_NO_SALES
    mean = sum(quantities) / len(quantities)
    variance = sum((q - mean) ** 2 for q in quantities) / len(quantities)
    stdev = math.sqrt(variance)
    cv = stdev / mean if mean > 0 else CV_NO_SALES
    return mean, stdev, cv


def xyz_class(cv: float, seuil_x: float, seuil_y: float) -> str:
    """XYZ class from the coefficient of variation (bounds inclusive)."""
    if cv <= seuil_x:
        return "X"
    if cv <= seuil_y:
        return "Y"
    return "Z"


def classify_abc_xyz(
    products: list[ProductFacts],
    periode: dict[str, str],
    seuil_a: float = 80.0,
    seuil_b: float = 95.0,
    seuil_x: float = 0.5,
    seuil_y: float = 1.0,
) -> dict[str, Any]:
    """Run the ABC/XYZ classification.

    Products without a current sale price or without any sales row in the
    period are excluded. A product whose rows are all zero is kept and
    lands in Z.

    Args:
        products: Candidate products with price, period sales and stock
        periode: Caller period echoed back in "criteres"
        seuil_a: Cumulative revenue % upper bound of class A
        seuil_b: Cumulative revenue % upper bound of class B
        seuil_x: CV upper bound of class X
        seuil_y: CV upper bound of class Y

    Returns:
        Result dict with criteres, synthese, matrice_abc_xyz and
        recommandations_strategiques

    """
    eligible = [p for p in products if p.price is not None and p.sales.has_rows]
    lines, total = rank_by_revenue(eligible)

    matrix: dict[str, list[dict[str, Any]]] = {cell.name: [] for cell in MatrixCell}
    repartition_abc = {"A": 0, "B": 0, "C": 0}
    repartition_xyz = {"X": 0, "Y": 0, "Z": 0}

    for line in lines:
        p = line.product
        abc = abc_class(line.pourcentage_cumule, seuil_a, seuil_b)
        mean, stdev, cv = variability(p.sales.monthly)
        xyz = xyz_class(cv, seuil_x, seuil_y)
        cell = MatrixCell.of(abc, xyz)

        repartition_abc[abc] += 1
        repartition_xyz[xyz] += 1
        matrix[cell.name].append(
            {
                "ean13": p.ean13,
                "nom": p.nom,
                "ca_periode": round(line.ca, 2),
                "ca_cumule": round(line.ca_cumule, 2),
                "pourcentage_ca": round(line.pourcentage_ca, 2),
                "pourcentage_cumule": round(line.pourcentage_cumule, 2),
                "rang_abc": line.rang,
                "classe_abc": abc,
                "ventes_moyennes_mensuelles": round(mean, 1),
                "ecart_type_ventes": round(stdev, 1),
                "coefficient_variation": round(cv, 3),
                "classe_xyz": xyz,
                "regularite_interpretation": XYZ_INTERPRETATIONS[xyz],
                "classification_finale": cell.name,
                "strategie_recommandee": cell.value.strategy,
                "actions_prioritaires": list(cell.value.actions),
                "stock_actuel": p.stock_total,
                "ventes_periode": p.sales.total,
            }
        )

    return {
        "criteres": {
            "periode": periode,
            "seuils_abc": {"A": seuil_a, "B": seuil_b},
            "seuils_xyz": {"X": seuil_x, "Y": seuil_y},
        },
        "synthese": {
            "ca_total": round(total, 2),
            "nb_produits_total": len(lines),
            "repartition_abc": repartition_abc,
            "repartition_xyz": repartition_xyz,
        },
        "matrice_abc_xyz": matrix,
        "recommandations_strategiques": {
            "priorite_absolue": len(matrix["AX"]),
            "surveillance_renforcee": len(matrix["AY"]) + len(matrix["AZ"]),
            "automatisation_possible": len(matrix["BX"]) + len(matrix["CX"]),
            "candidats_deferencement": len(matrix["CZ"]),
        },
    }
