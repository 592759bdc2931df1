"""Price primitives: promotion-aware sale price and tax-inclusive cost.

NO DATA ACCESS - pure functions only.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

DEFAULT_VAT_RATE = 20.0


@dataclass(frozen=True)
class EffectivePrice:
    """Sale price in force at an evaluation instant.

    Attributes:
        prix_vente_ttc: Regular sale price incl. tax
        prix_promo_ttc: Promotional price incl. tax, only when the promotion is active

    """

    prix_vente_ttc: float
    prix_promo_ttc: float | None = None

    @property
    def promo_active(self) -> bool:
        return self.prix_promo_ttc is not None

    @property
    def value(self) -> float:
        """Price actually charged (promo price when active)."""
        return self.prix_promo_ttc if self.prix_promo_ttc is not None else self.prix_vente_ttc


@dataclass(frozen=True)
class ProductCosts:
    """Current purchase cost of a product.

    Attributes:
        prix_achat_ht: Net purchase cost excl. tax
        tva: VAT rate (%) applied to the cost
        prix_achat_ttc: Net purchase cost incl. tax

    """

    prix_achat_ht: float
    tva: float
    prix_achat_ttc: float


def _as_date(at: date | datetime) -> date:
    return at.date() if isinstance(at, datetime) else at


def effective_price(
    prix_vente_ttc: float,
    prix_promo_ttc: float | None,
    date_debut_promo: date | None,
    date_fin_promo: date | None,
    at: date | datetime,
) -> EffectivePrice:
    """Resolve the sale price in force at `at`.

    A promotion applies only when its price and both bounds are set and
    `at` falls within [date_debut_promo, date_fin_promo], bounds included.

    Examples:
        >>> effective_price(10.0, 8.0, date(2025, 1, 1), date(2025, 1, 31), date(2025, 1, 31)).value
        8.0
        >>> effective_price(10.0, 8.0, date(2025, 1, 1), date(2025, 1, 31), date(2025, 2, 1)).value
        10.0

    """
    if prix_promo_ttc is None or date_debut_promo is None or date_fin_promo is None:
        return EffectivePrice(prix_vente_ttc)

    day = _as_date(at)
    if date_debut_promo <= day <= date_fin_promo:
        return EffectivePrice(prix_vente_ttc, prix_promo_ttc)
    return EffectivePrice(prix_vente_ttc)


def cost_ttc(net_cost_ht: float, vat_rate: float | None, default_vat: float = DEFAULT_VAT_RATE) -> float:
    """Tax-inclusive cost: net_cost_ht × (1 + vat/100).

    A missing VAT rate falls back to `default_vat`.
    """
    rate = default_vat if vat_rate is None else vat_rate
    return net_cost_ht * (1 + rate / 100)


def product_costs(
    net_cost_ht: float, vat_rate: float | None, default_vat: float = DEFAULT_VAT_RATE
) -> ProductCosts:
    """Build the cost record of a product from its net cost and VAT rate."""
    rate = default_vat if vat_rate is None else vat_rate
    return ProductCosts(
        prix_achat_ht=net_cost_ht,
        tva=rate,
        prix_achat_ttc=cost_ttc(net_cost_ht, rate),
    )


def margin_pct(sale_ttc: float, cost_ttc_value: float) -> float:
    """Margin rate (%) on the sale price; 0 when the sale price is 0."""
    if sale_ttc == 0:
        return 0.0
    return (sale_ttc - cost_ttc_value) / sale_ttc * 100
