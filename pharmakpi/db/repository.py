"""Read-only repository adapter over the pharmacy data store.

All SELECT statements issued by the analytics go through PharmacyRepository.
Every statement is compiled with its literal values and kept in an in-memory
log, which the services expose as the diagnostic "equivalent query".
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from typing import Any

from sqlalchemy import Select, and_, or_, select
from sqlalchemy.exc import CompileError
from sqlalchemy.orm import Session

from pharmakpi.core.config import get_settings
from pharmakpi.core.metrics import repository_queries_total
from pharmakpi.db.models import MonthlySales, Product, PurchasePrice, SalePrice, Stock
from pharmakpi.domain.analytics.periods import MonthWindow

logger = logging.getLogger(__name__)


def _chunks(ids: Sequence[int], size: int) -> Iterator[list[int]]:
    for start in range(0, len(ids), size):
        yield list(ids[start : start + size])


def window_clause(window: MonthWindow) -> Any:
    """Translate a MonthWindow into a WHERE clause on ventes_mensuelles."""
    annee, mois = MonthlySales.annee, MonthlySales.mois

    if window.single_year:
        return and_(
            annee == window.year_start,
            mois >= window.month_start,
            mois <= window.month_end,
        )
    if not window.exact:
        return and_(annee >= window.year_start, annee <= window.year_end)

    return or_(
        and_(annee == window.year_start, mois >= window.month_start),
        and_(annee > window.year_start, annee < window.year_end),
        and_(annee == window.year_end, mois <= window.month_end),
    )


class PharmacyRepository:
    """Repository adapter bound to one SQLAlchemy session.

    Not safe for concurrent use: one instance per request.
    """

    def __init__(self, db: Session, chunk_size: int | None = None):
        self.db = db
        self.chunk_size = chunk_size or get_settings().repository_chunk_size
        self.statements: list[str] = []

    # --- internals ---

    def _compile(self, stmt: Select) -> str:
        bind = self.db.get_bind()
        try:
            compiled = stmt.compile(dialect=bind.dialect, compile_kwargs={"literal_binds": True})
        except CompileError:
            # Types without a literal renderer: keep the parametrized form
            compiled = stmt.compile(dialect=bind.dialect)
        return str(compiled)

    def _run(self, stmt: Select, entity: str) -> list[Any]:
        sql = self._compile(stmt)
        self.statements.append(sql)
        repository_queries_total.labels(entity=entity).inc()
        logger.debug("repository_select", extra={"entity": entity})
        return list(self.db.execute(stmt).scalars().all())

    def _run_chunked(
        self, ids: Iterable[int], entity: str, build: Any
    ) -> list[Any]:
        """Run `build(chunk)` for each chunk of ids and concatenate the rows."""
        unique_ids = sorted(set(ids))
        rows: list[Any] = []
        for chunk in _chunks(unique_ids, self.chunk_size):
            rows.extend(self._run(build(chunk), entity))
        return rows

    def sql_log(self) -> str:
        """All statements issued so far, separated by blank lines."""
        return ";\n\n".join(self.statements) + (";" if self.statements else "")

    # --- queries ---

    def active_products(
        self,
        *,
        status: str,
        pharmacie_id: int | None = None,
        famille_id: int | None = None,
        ean13: str | None = None,
    ) -> list[Product]:
        """Products with the given status matching the direct equality filters."""
        stmt = select(Product).where(Product.statut == status)
        if pharmacie_id is not None:
            stmt = stmt.where(Product.pharmacie_id == pharmacie_id)
        if famille_id is not None:
            stmt = stmt.where(Product.famille_id == famille_id)
        if ean13:
            stmt = stmt.where(Product.ean13_principal == ean13)
        stmt = stmt.order_by(Product.id)
        return self._run(stmt, "produits")

    def product_ids_for_supplier(self, fournisseur_id: int, product_ids: Iterable[int]) -> set[int]:
        """Subset of product_ids having at least one purchase price from the supplier."""
        rows = self._run_chunked(
            product_ids,
            "prix_achats",
            lambda chunk: select(PurchasePrice.produit_id)
            .where(PurchasePrice.fournisseur_id == fournisseur_id)
            .where(PurchasePrice.produit_id.in_(chunk))
            .distinct(),
        )
        return set(rows)

    def purchase_prices(self, product_ids: Iterable[int]) -> list[PurchasePrice]:
        """Purchase price rows, most recent import first within each product."""
        return self._run_chunked(
            product_ids,
            "prix_achats",
            lambda chunk: select(PurchasePrice)
            .where(PurchasePrice.produit_id.in_(chunk))
            .order_by(PurchasePrice.produit_id, PurchasePrice.date_import.desc()),
        )

    def sale_prices(self, product_ids: Iterable[int]) -> list[SalePrice]:
        """Sale price rows, most recent extraction first within each product."""
        return self._run_chunked(
            product_ids,
            "prix_vente",
            lambda chunk: select(SalePrice)
            .where(SalePrice.produit_id.in_(chunk))
            .order_by(SalePrice.produit_id, SalePrice.date_extraction.desc()),
        )

    def stocks(self, product_ids: Iterable[int]) -> list[Stock]:
        """Stock snapshots, most recent extraction first within each product."""
        return self._run_chunked(
            product_ids,
            "stocks",
            lambda chunk: select(Stock)
            .where(Stock.produit_id.in_(chunk))
            .order_by(Stock.produit_id, Stock.date_extraction.desc()),
        )

    def monthly_sales(self, product_ids: Iterable[int], window: MonthWindow) -> list[MonthlySales]:
        """Monthly sales rows of the products selected by the window."""
        clause = window_clause(window)
        return self._run_chunked(
            product_ids,
            "ventes_mensuelles",
            lambda chunk: select(MonthlySales)
            .where(MonthlySales.produit_id.in_(chunk))
            .where(clause)
            .order_by(MonthlySales.produit_id, MonthlySales.annee, MonthlySales.mois),
        )
