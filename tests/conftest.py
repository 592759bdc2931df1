"""Shared pytest fixtures and configuration."""

from __future__ import annotations

from datetime import date, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from pharmakpi.db.models import (
    Base,
    Family,
    MonthlySales,
    Pharmacy,
    Product,
    PurchasePrice,
    SalePrice,
    Stock,
    Supplier,
)
from pharmakpi.domain.analytics.pricing import EffectivePrice, product_costs
from pharmakpi.domain.analytics.records import ProductFacts, summarize_sales

# Fixed evaluation instant shared by the tests
NOW = datetime(2025, 3, 15, 10, 30)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def engine():
    """In-memory SQLite engine shared across threads (TestClient runs sync endpoints in a pool)."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine) -> Session:
    """Create in-memory SQLite database for testing."""
    session = Session(engine)
    try:
        yield session
    finally:
        session.close()


class StoreBuilder:
    """Seed helper for the pharmacy store tables."""

    def __init__(self, session: Session):
        self.session = session
        self._pharmacy: Pharmacy | None = None

    @property
    def pharmacy(self) -> Pharmacy:
        if self._pharmacy is None:
            self._pharmacy = self.add_pharmacy("Pharmacie du Centre", "PH001")
        return self._pharmacy

    def add_pharmacy(self, nom: str, code: str) -> Pharmacy:
        pharmacy = Pharmacy(nom_pharmacie=nom, code_interne=code, statut="ACTIF")
        self.session.add(pharmacy)
        self.session.flush()
        return pharmacy

    def family(self, nom: str = "Dermatologie") -> Family:
        family = Family(nom_famille=nom, niveau=1)
        self.session.add(family)
        self.session.flush()
        return family

    def supplier(self, code: str = "F001", nom: str = "Grossiste A") -> Supplier:
        supplier = Supplier(
            code_fournisseur=code, nom_fournisseur=nom, pharmacie_id=self.pharmacy.id
        )
        self.session.add(supplier)
        self.session.flush()
        return supplier

    def product(
        self,
        ean13: str,
        designation: str | None = None,
        *,
        tva: float | None = 20.0,
        statut: str = "ACTIF",
        famille: Family | None = None,
        pharmacy: Pharmacy | None = None,
    ) -> Product:
        product = Product(
            ean13_principal=ean13,
            designation=designation or f"Produit {ean13}",
            tva=tva,
            statut=statut,
            famille_id=famille.id if famille else None,
            pharmacie_id=(pharmacy or self.pharmacy).id,
        )
        self.session.add(product)
        self.session.flush()
        return product

    def purchase_price(
        self,
        product: Product,
        prix_net_ht: float | None,
        *,
        supplier: Supplier | None = None,
        date_import: date = date(2025, 1, 10),
    ) -> PurchasePrice:
        row = PurchasePrice(
            produit_id=product.id,
            fournisseur_id=supplier.id if supplier else None,
            prix_achat_ht=prix_net_ht or 0.0,
            remise_ligne=0.0,
            prix_net_ht=prix_net_ht,
            date_import=date_import,
        )
        self.session.add(row)
        return row

    def sale_price(
        self,
        product: Product,
        prix_vente_ttc: float,
        *,
        promo: float | None = None,
        debut_promo: date | None = None,
        fin_promo: date | None = None,
        date_extraction: date = date(2025, 3, 1),
    ) -> SalePrice:
        row = SalePrice(
            produit_id=product.id,
            prix_vente_ttc=prix_vente_ttc,
            prix_promo_ttc=promo,
            date_debut_promo=debut_promo,
            date_fin_promo=fin_promo,
            date_extraction=date_extraction,
        )
        self.session.add(row)
        return row

    def stock(
        self,
        product: Product,
        rayon: int | None,
        reserve: int | None = 0,
        *,
        date_extraction: date = date(2025, 3, 1),
    ) -> Stock:
        row = Stock(
            produit_id=product.id,
            quantite_rayon=rayon,
            quantite_reserve=reserve,
            date_extraction=date_extraction,
        )
        self.session.add(row)
        return row

    def sales(self, product: Product, quantities: dict[tuple[int, int], int | None]) -> None:
        """Add monthly sales rows keyed by (year, month)."""
        for (annee, mois), qty in quantities.items():
            self.session.add(
                MonthlySales(produit_id=product.id, annee=annee, mois=mois, quantite_vendue=qty)
            )

    def commit(self) -> None:
        self.session.commit()


@pytest.fixture
def store(db) -> StoreBuilder:
    return StoreBuilder(db)


@pytest.fixture
def make_facts():
    """Factory of ProductFacts for the pure analyzer tests."""
    counter = {"n": 0}

    def _make(
        *,
        price: float | None = 10.0,
        promo: float | None = None,
        cost_ht: float | None = None,
        tva: float = 20.0,
        sales: dict[tuple[int, int], int] | None = None,
        rayon: int = 0,
        reserve: int = 0,
        ean13: str | None = None,
        nom: str | None = None,
    ) -> ProductFacts:
        counter["n"] += 1
        n = counter["n"]
        rows = [(n, annee, mois, qty) for (annee, mois), qty in (sales or {}).items()]
        summary = summarize_sales(rows).get(n)
        facts = ProductFacts(
            produit_id=n,
            ean13=ean13 or f"340000000{n:04d}",
            nom=nom or f"Produit {n}",
            price=EffectivePrice(price, promo) if price is not None else None,
            costs=product_costs(cost_ht, tva) if cost_ht is not None else None,
            stock_rayon=rayon,
            stock_reserve=reserve,
        )
        if summary is not None:
            facts.sales = summary
        return facts

    return _make
