"""Shared data assembly for the analyses.

Resolves candidate products, their current prices and costs, their current
stock and their sales over a month window, and assembles them into
ProductFacts records for the pure analyzers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from pharmakpi.core.config import get_settings
from pharmakpi.db.models import Product
from pharmakpi.db.repository import PharmacyRepository
from pharmakpi.domain.analytics.periods import MonthWindow
from pharmakpi.domain.analytics.pricing import (
    EffectivePrice,
    ProductCosts,
    effective_price,
    product_costs,
)
from pharmakpi.domain.analytics.records import ProductFacts, SalesSummary, summarize_sales

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProductFilters:
    """Optional filters narrowing the candidate products."""

    pharmacie_id: int | None = None
    famille_id: int | None = None
    ean13: str | None = None
    fournisseur_id: int | None = None

    def applied(self) -> dict[str, Any]:
        """Filters actually set, keyed the way results echo them back."""
        out: dict[str, Any] = {}
        if self.pharmacie_id:
            out["pharmacie"] = self.pharmacie_id
        if self.fournisseur_id:
            out["fournisseur"] = self.fournisseur_id
        if self.famille_id:
            out["famille"] = self.famille_id
        if self.ean13:
            out["ean13"] = self.ean13
        return out


def _first_per_product(rows: list[Any]) -> dict[int, Any]:
    # Rows come ordered most recent first within each product
    out: dict[int, Any] = {}
    for row in rows:
        out.setdefault(row.produit_id, row)
    return out


def resolve_products(repo: PharmacyRepository, filters: ProductFilters) -> list[Product]:
    """Active products matching the filters.

    The supplier filter keeps only products having at least one purchase
    price from that supplier.
    """
    settings = get_settings()
    products = repo.active_products(
        status=settings.active_product_status,
        pharmacie_id=filters.pharmacie_id,
        famille_id=filters.famille_id,
        ean13=filters.ean13,
    )
    if filters.fournisseur_id is not None and products:
        supplied = repo.product_ids_for_supplier(filters.fournisseur_id, [p.id for p in products])
        products = [p for p in products if p.id in supplied]

    logger.debug(
        "products_resolved",
        extra={"count": len(products), "filters": filters.applied()},
    )
    return products


def resolve_prices(
    repo: PharmacyRepository,
    products: list[Product],
    at: date | datetime,
    with_costs: bool = True,
) -> tuple[dict[int, EffectivePrice], dict[int, ProductCosts]]:
    """Current effective sale price and current costs per product id.

    Products without a sale price (or without a net cost) are absent from
    the corresponding dict.
    """
    if not products:
        return {}, {}

    ids = [p.id for p in products]
    default_vat = get_settings().default_vat_rate

    prices: dict[int, EffectivePrice] = {}
    for produit_id, row in _first_per_product(repo.sale_prices(ids)).items():
        prices[produit_id] = effective_price(
            row.prix_vente_ttc,
            row.prix_promo_ttc,
            row.date_debut_promo,
            row.date_fin_promo,
            at,
        )

    costs: dict[int, ProductCosts] = {}
    if with_costs:
        vat_by_id = {p.id: p.tva for p in products}
        for produit_id, row in _first_per_product(repo.purchase_prices(ids)).items():
            if row.prix_net_ht is None:
                continue
            costs[produit_id] = product_costs(row.prix_net_ht, vat_by_id.get(produit_id), default_vat)

    return prices, costs


def aggregate_sales(
    repo: PharmacyRepository, products: list[Product], window: MonthWindow
) -> dict[int, SalesSummary]:
    """Sales per product over the window (products without rows are absent)."""
    if not products:
        return {}
    rows = repo.monthly_sales([p.id for p in products], window)
    return summarize_sales((r.produit_id, r.annee, r.mois, r.quantite_vendue) for r in rows)


def resolve_stock(repo: PharmacyRepository, products: list[Product]) -> dict[int, tuple[int, int]]:
    """Current (shelf, reserve) quantities per product id; nulls count as 0."""
    if not products:
        return {}
    return {
        produit_id: (row.quantite_rayon or 0, row.quantite_reserve or 0)
        for produit_id, row in _first_per_product(repo.stocks([p.id for p in products])).items()
    }


def assemble_facts(
    products: list[Product],
    *,
    prices: dict[int, EffectivePrice] | None = None,
    costs: dict[int, ProductCosts] | None = None,
    sales: dict[int, SalesSummary] | None = None,
    stock: dict[int, tuple[int, int]] | None = None,
) -> list[ProductFacts]:
    """Join the resolved data into one ProductFacts per product."""
    prices = prices or {}
    costs = costs or {}
    sales = sales or {}
    stock = stock or {}

    facts = []
    for p in products:
        rayon, reserve = stock.get(p.id, (0, 0))
        facts.append(
            ProductFacts(
                produit_id=p.id,
                ean13=p.ean13_principal,
                nom=p.designation,
                price=prices.get(p.id),
                costs=costs.get(p.id),
                sales=sales.get(p.id, SalesSummary()),
                stock_rayon=rayon,
                stock_reserve=reserve,
            )
        )
    return facts
