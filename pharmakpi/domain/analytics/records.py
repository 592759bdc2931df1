"""Per-product records assembled by the resolvers and consumed by the analyzers.

NO DATA ACCESS - pure functions only.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from pharmakpi.domain.analytics.periods import month_key
from pharmakpi.domain.analytics.pricing import EffectivePrice, ProductCosts


class ThresholdMode(str, Enum):
    """Side of the threshold an analysis looks at."""

    BELOW = "dessous"
    ABOVE = "dessus"

    @classmethod
    def parse(cls, value: str | ThresholdMode) -> ThresholdMode:
        """Parse a mode, accepting the English aliases "below" and "above".

        Raises:
            ValueError: If the value is not a known mode.

        """
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        aliases = {"below": cls.BELOW, "above": cls.ABOVE}
        if normalized in aliases:
            return aliases[normalized]
        return cls(normalized)


@dataclass
class SalesSummary:
    """Sales of one product over a month window.

    Attributes:
        total: Sum of quantities
        by_month: "YYYY-MM" -> quantity
        monthly: One quantity per sales row, in chronological order

    """

    total: int = 0
    by_month: dict[str, int] = field(default_factory=dict)
    monthly: list[int] = field(default_factory=list)

    @property
    def has_rows(self) -> bool:
        return bool(self.monthly)

    @property
    def last_sale_month(self) -> str | None:
        """Most recent "YYYY-MM" with a positive quantity."""
        months = [key for key, qty in self.by_month.items() if qty > 0]
        return max(months) if months else None


def summarize_sales(rows: Iterable[tuple[int, int, int, int | None]]) -> dict[int, SalesSummary]:
    """Aggregate monthly sales rows per product.

    Args:
        rows: (produit_id, annee, mois, quantite_vendue) tuples; a null
              quantity counts as 0

    Returns:
        Dict produit_id -> SalesSummary (products without rows are absent)

    """
    ordered = sorted(rows, key=lambda r: (r[0], r[1], r[2]))
    out: dict[int, SalesSummary] = {}
    for produit_id, annee, mois, quantite in ordered:
        qty = quantite or 0
        summary = out.setdefault(produit_id, SalesSummary())
        key = month_key(annee, mois)
        summary.total += qty
        summary.by_month[key] = summary.by_month.get(key, 0) + qty
        summary.monthly.append(qty)
    return out


@dataclass
class ProductFacts:
    """Everything an analyzer needs to know about one candidate product.

    Attributes:
        produit_id: Product id
        ean13: Main barcode
        nom: Product designation
        price: Effective sale price at the evaluation instant (None if unknown)
        costs: Current purchase costs (None if unknown)
        sales: Sales over the analysis window
        stock_rayon: Current shelf quantity
        stock_reserve: Current reserve quantity

    """

    produit_id: int
    ean13: str
    nom: str
    price: EffectivePrice | None = None
    costs: ProductCosts | None = None
    sales: SalesSummary = field(default_factory=SalesSummary)
    stock_rayon: int = 0
    stock_reserve: int = 0

    @property
    def stock_total(self) -> int:
        return self.stock_rayon + self.stock_reserve
