"""SQLAlchemy ORM models of the pharmacy data store.

This module maps the tables the analytics layer reads:
- Reference data (pharmacies, families, suppliers, products)
- Price history (purchase prices, sale prices with promotions)
- Snapshots and facts (stock levels, monthly sales)

The store is fed by an external extraction job; analytics never write to it.
Table and column names follow the store's schema (French).
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import (
    Date,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# =============================================================================
# Reference Tables (Référentiels)
# =============================================================================


class Pharmacy(Base):
    """Pharmacie (point de vente)."""

    __tablename__ = "pharmacies"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    nom_pharmacie: Mapped[str] = mapped_column(String(200))
    code_interne: Mapped[str] = mapped_column(String(50))  # Code interne du groupement
    statut: Mapped[str | None] = mapped_column(String(20), nullable=True)


class Family(Base):
    """Famille de produits (arborescence via parent_id)."""

    __tablename__ = "familles"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    nom_famille: Mapped[str] = mapped_column(String(200))
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("familles.id", ondelete="SET NULL"), nullable=True
    )
    niveau: Mapped[int | None] = mapped_column(Integer, nullable=True)  # Profondeur dans l'arbre
    code_famille: Mapped[str | None] = mapped_column(String(50), nullable=True)


class Supplier(Base):
    """Fournisseur (grossiste ou laboratoire)."""

    __tablename__ = "fournisseurs"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    code_fournisseur: Mapped[str] = mapped_column(String(50))
    nom_fournisseur: Mapped[str] = mapped_column(String(200))
    statut: Mapped[str | None] = mapped_column(String(20), nullable=True)
    pharmacie_id: Mapped[int] = mapped_column(ForeignKey("pharmacies.id"), index=True)


class Product(Base):
    """Produit référencé par une pharmacie.

    Only products with statut == "ACTIF" are analysed.
    """

    __tablename__ = "produits"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    ean13_principal: Mapped[str] = mapped_column(String(13), index=True)  # Code-barres principal
    designation: Mapped[str] = mapped_column(String(255))  # Libellé produit
    tva: Mapped[float | None] = mapped_column(Float, nullable=True)  # Taux de TVA (%)
    famille_id: Mapped[int | None] = mapped_column(
        ForeignKey("familles.id", ondelete="SET NULL"), index=True, nullable=True
    )
    statut: Mapped[str | None] = mapped_column(String(20), nullable=True)  # "ACTIF" | "INACTIF"
    pharmacie_id: Mapped[int] = mapped_column(ForeignKey("pharmacies.id"), index=True)

    __table_args__ = (
        UniqueConstraint("pharmacie_id", "ean13_principal", name="uq_produit_pharmacie_ean13"),
    )


# =============================================================================
# Price History (Historique des prix)
# =============================================================================


class PurchasePrice(Base):
    """Prix d'achat importé d'une facture fournisseur.

    Several rows per product; the current one is the latest date_import.
    """

    __tablename__ = "prix_achats"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    produit_id: Mapped[int] = mapped_column(
        ForeignKey("produits.id", ondelete="CASCADE"), index=True
    )
    fournisseur_id: Mapped[int | None] = mapped_column(
        ForeignKey("fournisseurs.id", ondelete="SET NULL"), index=True, nullable=True
    )
    prix_achat_ht: Mapped[float] = mapped_column(Float)  # Prix catalogue HT
    remise_ligne: Mapped[float | None] = mapped_column(Float, nullable=True)  # Remise (%)
    prix_net_ht: Mapped[float | None] = mapped_column(Float, nullable=True)  # Coût net HT
    date_import: Mapped[date] = mapped_column(Date, index=True)
    pharmacie_id: Mapped[int | None] = mapped_column(ForeignKey("pharmacies.id"), nullable=True)

    __table_args__ = (Index("ix_prix_achats_produit_date", "produit_id", "date_import"),)


class SalePrice(Base):
    """Prix de vente TTC, avec promotion optionnelle.

    A promotion applies while the evaluation date lies in
    [date_debut_promo, date_fin_promo] (bounds inclusive).
    """

    __tablename__ = "prix_vente"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    produit_id: Mapped[int] = mapped_column(
        ForeignKey("produits.id", ondelete="CASCADE"), index=True
    )
    prix_vente_ttc: Mapped[float] = mapped_column(Float)
    prix_promo_ttc: Mapped[float | None] = mapped_column(Float, nullable=True)
    date_debut_promo: Mapped[date | None] = mapped_column(Date, nullable=True)
    date_fin_promo: Mapped[date | None] = mapped_column(Date, nullable=True)
    date_extraction: Mapped[date] = mapped_column(Date, index=True)
    pharmacie_id: Mapped[int | None] = mapped_column(ForeignKey("pharmacies.id"), nullable=True)

    __table_args__ = (Index("ix_prix_vente_produit_date", "produit_id", "date_extraction"),)


# =============================================================================
# Snapshots and facts (Stocks et ventes)
# =============================================================================


class Stock(Base):
    """Stock extrait du logiciel d'officine (rayon + réserve)."""

    __tablename__ = "stocks"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    produit_id: Mapped[int] = mapped_column(
        ForeignKey("produits.id", ondelete="CASCADE"), index=True
    )
    quantite_rayon: Mapped[int | None] = mapped_column(Integer, nullable=True)  # En rayon
    quantite_reserve: Mapped[int | None] = mapped_column(Integer, nullable=True)  # En réserve
    stock_mini_rayon: Mapped[int | None] = mapped_column(Integer, nullable=True)
    stock_maxi_rayon: Mapped[int | None] = mapped_column(Integer, nullable=True)
    date_extraction: Mapped[date] = mapped_column(Date, index=True)
    pharmacie_id: Mapped[int | None] = mapped_column(ForeignKey("pharmacies.id"), nullable=True)

    __table_args__ = (Index("ix_stocks_produit_date", "produit_id", "date_extraction"),)


class MonthlySales(Base):
    """Ventes mensuelles agrégées (une ligne par produit et par mois).

    Idempotent upserts are done upstream on (produit_id, annee, mois).
    """

    __tablename__ = "ventes_mensuelles"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    produit_id: Mapped[int] = mapped_column(
        ForeignKey("produits.id", ondelete="CASCADE"), index=True
    )
    annee: Mapped[int] = mapped_column(Integer, index=True)
    mois: Mapped[int] = mapped_column(Integer)  # 1..12
    quantite_vendue: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pharmacie_id: Mapped[int | None] = mapped_column(ForeignKey("pharmacies.id"), nullable=True)

    __table_args__ = (
        UniqueConstraint("produit_id", "annee", "mois", name="uq_ventes_produit_mois"),
        Index("ix_ventes_annee_mois", "annee", "mois"),
    )
