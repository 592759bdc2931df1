"""End-to-end tests of the analyses over an in-memory store."""

from __future__ import annotations

from datetime import date
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from pharmakpi.db.repository import PharmacyRepository
from pharmakpi.services import analyses
from pharmakpi.services.analyses import AnalysisError
from pharmakpi.services.resolvers import ProductFilters

NO_FILTERS = ProductFilters()


@pytest.fixture
def seeded(store):
    """Two active products and a discontinued one.

    A: sold 10.00, net cost 5.00 (40% margin), 12 units in stock.
    B: sold 20.00, net cost 18.00 (negative margin), out of stock.
    """
    supplier = store.supplier()
    a = store.product("3400000000001", "Doliprane 1000mg")
    b = store.product("3400000000002", "Biafine 93g")
    c = store.product("3400000000003", "Ancien sirop", statut="ARRETE")

    store.sale_price(a, 10.0)
    store.sale_price(b, 20.0)
    store.sale_price(c, 5.0)
    store.purchase_price(a, 5.0, supplier=supplier)
    store.purchase_price(b, 18.0)
    store.purchase_price(c, 1.0)
    store.stock(a, 10, 2)
    store.stock(b, 0, 0)

    store.sales(a, {(2024, 2): 100, (2024, 6): 30, (2025, 2): 6})
    store.sales(b, {(2024, 12): 12})
    store.sales(c, {(2024, 6): 999})
    store.commit()
    return {"a": a, "b": b, "c": c, "supplier": supplier}


def test_margin_below_threshold(db, seeded, now):
    result = analyses.run_margin_analysis(
        db, seuil_marge=30, mode="dessous", filters=NO_FILTERS, now=now
    )

    data = result.data
    assert data["criteres"]["periode_analyse"] == {"debut": "2024-03", "fin": "2025-03"}
    assert [r["ean13"] for r in data["produits_trouves"]] == ["3400000000002"]
    row = data["produits_trouves"][0]
    assert row["pourcentage_marge_calcule"] == -8.0
    assert row["ventes_periode"] == 12


def test_margin_above_uses_trailing_window(db, seeded, now):
    result = analyses.run_margin_analysis(
        db, seuil_marge=30, mode="above", filters=NO_FILTERS, now=now
    )

    (row,) = result.data["produits_trouves"]
    assert row["nom"] == "Doliprane 1000mg"
    # 2024-02 lies before the trailing window
    assert row["ventes_periode"] == 36
    assert result.data["criteres"]["mode"] == "dessus"


def test_result_metadata(db, seeded, now):
    result = analyses.run_margin_analysis(
        db, seuil_marge=30, mode="dessous", filters=NO_FILTERS, now=now
    )

    meta = result.metadata
    assert meta.count == 1
    assert meta.execution_time_ms >= 0
    assert "produits" in meta.sql
    assert "prix_vente" in meta.sql
    assert "ventes_mensuelles" in meta.sql


def test_stock_analysis(db, seeded, now):
    result = analyses.run_stock_analysis(
        db, seuil_mois_stock=3, mode="dessous", filters=NO_FILTERS, now=now
    )

    rows = result.data["produits_trouves"]
    assert [r["nom"] for r in rows] == ["Biafine 93g", "Doliprane 1000mg"]
    assert rows[0]["mois_stock_calcule"] == "Rupture"
    assert rows[0]["respecte_critere"] is True
    # 12 units at 3 per month
    assert rows[1]["mois_stock_calcule"] == 4.0
    assert rows[1]["respecte_critere"] is False
    assert result.data["resume"]["produits_rupture"] == 1


def test_pareto_over_caller_period(db, seeded, now):
    result = analyses.run_pareto_analysis(
        db,
        seuil_pareto=80,
        date_debut=date(2024, 1, 1),
        date_fin=date(2024, 12, 31),
        filters=NO_FILTERS,
        now=now,
    )

    analyse = result.data["analyse"]
    assert analyse["ca_total"] == 1540.0
    assert analyse["nb_produits_total"] == 2
    assert [r["ean13"] for r in result.data["produits_pareto"]] == [
        "3400000000001",
        "3400000000002",
    ]
    assert result.data["criteres"]["periode"] == {"debut": "2024-01-01", "fin": "2024-12-31"}


def test_abc_xyz_classification(db, seeded, now):
    result = analyses.run_abc_xyz_analysis(
        db,
        date_debut=date(2024, 1, 1),
        date_fin=date(2024, 12, 31),
        filters=NO_FILTERS,
        now=now,
    )

    matrix = result.data["matrice_abc_xyz"]
    # A: 1300 of 1540 (84.4%), monthly [100, 30] has a CV of 0.54
    assert [r["ean13"] for r in matrix["BY"]] == ["3400000000001"]
    assert [r["ean13"] for r in matrix["CX"]] == ["3400000000002"]
    assert result.data["criteres"]["seuils_abc"] == {"A": 80.0, "B": 95.0}


def test_abc_xyz_custom_thresholds(db, seeded, now):
    result = analyses.run_abc_xyz_analysis(
        db,
        date_debut=date(2024, 1, 1),
        date_fin=date(2024, 12, 31),
        filters=NO_FILTERS,
        now=now,
        seuil_abc_a=90,
        seuil_xyz_x=0.6,
    )

    assert [r["ean13"] for r in result.data["matrice_abc_xyz"]["AX"]] == ["3400000000001"]


def test_seasonality_history(db, seeded, now):
    result = analyses.run_seasonality_analysis(db, filters=NO_FILTERS, now=now)

    data = result.data
    assert data["synthese"]["nb_produits_total"] == 2
    assert data["criteres"]["periode_historique"]["debut"] == "2022-03-15"
    assert data["criteres"]["nb_mois_prevision"] == 6
    assert all(len(r["previsions_prochains_mois"]) == 6 for r in data["produits_saisonniers"])


def test_seasonality_overrides(db, seeded, now):
    result = analyses.run_seasonality_analysis(
        db,
        filters=NO_FILTERS,
        now=now,
        periode_historique_annees=1,
        nb_mois_prevision=2,
    )

    criteres = result.data["criteres"]
    assert criteres["periode_historique"]["nb_annees"] == 1
    assert criteres["nb_mois_prevision"] == 2


def test_revenue_kpi(db, seeded, now):
    result = analyses.run_revenue_kpi(
        db,
        date_debut=date(2024, 1, 1),
        date_fin=date(2024, 12, 31),
        filters=NO_FILTERS,
        now=now,
    )

    data = result.data
    assert data["ca_ttc_total"] == 1540.0
    assert data["nb_produits"] == 2
    assert data["nb_ventes"] == 3
    assert [m["mois"] for m in data["ca_par_mois"]] == ["2024-02", "2024-06", "2024-12"]


def test_revenue_kpi_with_supplier_filter(db, seeded, now):
    supplier = seeded["supplier"]

    result = analyses.run_revenue_kpi(
        db,
        date_debut=date(2024, 1, 1),
        date_fin=date(2024, 12, 31),
        filters=ProductFilters(fournisseur_id=supplier.id),
        now=now,
    )

    assert result.data["ca_ttc_total"] == 1300.0
    assert result.data["filtres_appliques"] == {"fournisseur": supplier.id}


def test_margin_kpi(db, seeded, now):
    result = analyses.run_margin_kpi(
        db,
        date_debut=date(2024, 1, 1),
        date_fin=date(2024, 12, 31),
        filters=NO_FILTERS,
        now=now,
    )

    # A: 4.00 x 130, B: -1.60 x 12
    assert result.data["marge_ttc_total"] == pytest.approx(500.8)
    assert result.data["ca_ttc_total"] == 1540.0


def test_evolutions(db, seeded, now):
    result = analyses.run_evolutions(
        db,
        date_debut_courante=date(2025, 1, 1),
        date_fin_courante=date(2025, 3, 31),
        date_debut_comparaison=date(2024, 1, 1),
        date_fin_comparaison=date(2024, 3, 31),
        filters=NO_FILTERS,
        now=now,
    )

    data = result.data
    assert data["evolutions_globales"]["ca_ttc"]["periode_courante"] == 60.0
    assert data["evolutions_globales"]["ca_ttc"]["periode_comparaison"] == 1000.0
    assert data["evolutions_globales"]["ca_ttc"]["evolution_pct"] == -94.0
    assert data["evolutions_mensuelles"] == [
        {
            "mois": "2025-02",
            "ca_evolution_pct": -94.0,
            "marge_evolution_pct": -94.0,
            "quantite_evolution_pct": -94.0,
        }
    ]


def test_empty_store_gives_well_formed_results(db, now):
    result = analyses.run_pareto_analysis(
        db,
        seuil_pareto=80,
        date_debut=date(2024, 1, 1),
        date_fin=date(2024, 12, 31),
        filters=NO_FILTERS,
        now=now,
    )

    assert result.data["analyse"]["nb_produits_total"] == 0
    assert result.data["produits_pareto"] == []
    assert result.metadata.sql.count(";") == 1


def test_store_failure_raises_analysis_error(db, now):
    failure = OperationalError("SELECT", {}, Exception("database is locked"))

    with patch.object(PharmacyRepository, "active_products", side_effect=failure):
        with pytest.raises(AnalysisError) as excinfo:
            analyses.run_margin_analysis(
                db, seuil_marge=30, mode="dessous", filters=NO_FILTERS, now=now
            )

    assert excinfo.value.analysis == "marge"
    assert "database is locked" in str(excinfo.value)


def test_same_rows_same_result(db, seeded, now):
    kwargs = dict(
        date_debut=date(2024, 1, 1), date_fin=date(2024, 12, 31), filters=NO_FILTERS, now=now
    )

    first = analyses.run_abc_xyz_analysis(db, **kwargs)
    second = analyses.run_abc_xyz_analysis(db, **kwargs)

    assert first.data == second.data
    assert first.metadata.sql == second.metadata.sql
