"""Tests for seasonality detection and forecast."""

from __future__ import annotations

from datetime import date

import pytest

from pharmakpi.domain.analytics.seasonality import (
    ForecastConfidence,
    SeasonalityType,
    SeasonalProfile,
    annual_trend_pct,
    analyze_seasonality,
    coefficient_interpretation,
    forecast,
    recommendations,
    seasonal_profile,
    seasonality_type,
)

NOW = date(2025, 3, 15)


def _year(year: int, values: list[int]) -> dict[tuple[int, int], int]:
    return {(year, month): qty for month, qty in enumerate(values, start=1)}


def _by_month(year: int, values: list[int]) -> dict[str, int]:
    return {f"{year}-{month:02d}": qty for month, qty in enumerate(values, start=1)}


class TestProfile:
    def test_december_peak_gives_moderate_seasonality(self):
        profile = seasonal_profile(_by_month(2024, [100] * 11 + [200]))

        assert profile.coefficients[11] == pytest.approx(1.846, abs=1e-3)
        assert profile.coefficients[0] == pytest.approx(0.923, abs=1e-3)
        assert profile.amplitude == pytest.approx(0.923, abs=1e-3)
        assert profile.peak_month == 12
        assert profile.trough_month == 1
        assert seasonality_type(profile.amplitude, 1.5, 0.8) is SeasonalityType.MOYENNE

    def test_months_averaged_across_years(self):
        by_month = {**_by_month(2023, [10] * 12), **_by_month(2024, [30] * 12)}

        profile = seasonal_profile(by_month)

        assert profile.monthly_avg == (20.0,) * 12
        assert profile.annual_avg == 20.0
        assert profile.reference_volume == 240.0

    def test_no_sales_gives_flat_coefficients(self):
        profile = seasonal_profile(_by_month(2024, [0] * 12))

        assert profile.coefficients == (1.0,) * 12
        assert profile.amplitude == 0.0

    def test_missing_months_average_to_zero(self):
        profile = seasonal_profile({"2024-07": 120})

        assert profile.monthly_avg[6] == 120
        assert profile.monthly_avg[0] == 0
        assert profile.peak_month == 7
        assert profile.trough_month == 1

    @pytest.mark.parametrize(
        "amplitude,expected",
        [
            (1.5, SeasonalityType.FORTE),
            (0.8, SeasonalityType.MOYENNE),
            (0.3, SeasonalityType.FAIBLE),
            (0.29, SeasonalityType.AUCUNE),
        ],
    )
    def test_seasonality_type_bounds(self, amplitude, expected):
        assert seasonality_type(amplitude, 1.5, 0.8) is expected

    @pytest.mark.parametrize(
        "coefficient,label",
        [
            (1.5, "Pic très fort (+50%)"),
            (1.2, "Pic modéré (+20%)"),
            (0.8, "Normal"),
            (0.5, "Creux modéré (-20%)"),
            (0.49, "Creux très fort (-50%)"),
        ],
    )
    def test_coefficient_interpretation(self, coefficient, label):
        assert coefficient_interpretation(coefficient) == label


class TestTrend:
    def test_current_year_closes_the_window(self):
        by_month = {"2022-01": 100, "2023-01": 120, "2024-01": 50}

        assert annual_trend_pct(by_month, 2022, 2024) == pytest.approx(-25.0)

    def test_growth_averaged_per_year(self):
        assert annual_trend_pct({"2021-05": 100, "2023-05": 150}, 2021, 2023) == pytest.approx(25.0)

    def test_missing_last_year_counts_as_zero(self):
        assert annual_trend_pct({"2022-05": 200, "2023-05": 150}, 2022, 2024) == pytest.approx(-50.0)

    def test_rows_outside_window_ignored(self):
        assert annual_trend_pct({"2020-01": 999, "2024-01": 100, "2025-01": 300}, 2024, 2025) == 200.0

    def test_single_year_window_has_no_trend(self):
        assert annual_trend_pct({"2025-01": 300}, 2025, 2025) == 0.0

    def test_zero_first_year_has_no_trend(self):
        assert annual_trend_pct({"2022-01": 0, "2023-01": 50}, 2022, 2023) == 0.0
        assert annual_trend_pct({"2023-01": 50}, 2022, 2023) == 0.0


class TestForecast:
    @pytest.fixture
    def flat_profile(self):
        return SeasonalProfile(
            monthly_avg=(2.5,) * 12,
            annual_avg=2.5,
            coefficients=(1.0,) * 12,
            peak_month=1,
            trough_month=1,
            amplitude=0.0,
        )

    def test_forecast_rolls_over_year_end(self, flat_profile):
        rows = forecast(flat_profile, 0.0, SeasonalityType.AUCUNE, date(2025, 11, 1), 3)

        assert [r["mois"] for r in rows] == ["2025-12", "2026-01", "2026-02"]
        assert [r["annee"] for r in rows] == [2025, 2026, 2026]

    def test_forecast_rounding_and_stock_bounds(self, flat_profile):
        row = forecast(flat_profile, 0.0, SeasonalityType.AUCUNE, NOW, 1)[0]

        # 2.5 rounds half up; bounds are ceilings of 1.25 and 3.75
        assert row["ventes_prevues"] == 3
        assert row["stock_recommande_mini"] == 2
        assert row["stock_recommande_maxi"] == 4
        assert row["confiance_prevision"] == ForecastConfidence.LOW.value

    def test_trend_compounds_over_horizon(self):
        profile = SeasonalProfile(
            monthly_avg=(100.0,) * 12,
            annual_avg=100.0,
            coefficients=(1.0,) * 12,
            peak_month=1,
            trough_month=1,
            amplitude=0.0,
        )

        rows = forecast(profile, 12.0, SeasonalityType.FORTE, NOW, 12)

        assert rows[-1]["ventes_prevues"] == 112
        assert rows[0]["confiance_prevision"] == "ELEVEE"

    def test_recommendations_mention_peak_and_trend(self):
        recs, level = recommendations(SeasonalityType.FORTE, "Décembre", 25.0)

        assert level.value == "CRITIQUE"
        assert "Stock renforcé avant Décembre" in recs
        assert recs[-1] == "Tendance croissante forte (+25.0%/an)"

        recs, level = recommendations(SeasonalityType.AUCUNE, "Janvier", -10.0)
        assert level.value == "MINIMAL"
        assert recs == ["Gestion standard toute l'année", "Tendance décroissante (-10.0%/an)"]


@pytest.fixture
def history(make_facts):
    winter = [400, 50, 50, 50, 50, 50, 50, 50, 50, 50, 50, 400]
    return [
        make_facts(sales={**_year(2023, winter), **_year(2024, winter)}, rayon=30, nom="hiver"),
        make_facts(sales=_year(2024, [20] * 12), nom="plat"),
        make_facts(nom="nouveau"),
    ]


def test_products_without_history_excluded(history):
    result = analyze_seasonality(history, NOW)

    assert [r["nom"] for r in result["produits_saisonniers"]] == ["hiver", "plat"]
    assert result["synthese"]["nb_produits_total"] == 2


def test_strong_winter_profile(history):
    result = analyze_seasonality(history, NOW)
    record = result["produits_saisonniers"][0]

    assert record["type_saisonnalite"] == "FORTE"
    assert record["pic_saisonnier"]["mois"] == 1
    assert record["pic_saisonnier"]["nom_mois"] == "Janvier"
    assert record["pic_saisonnier"]["interpretation"] == "Pic très fort (+50%)"
    assert record["creux_saisonnier"]["mois"] == 2
    assert record["niveau_surveillance"] == "CRITIQUE"
    assert "Stock renforcé avant Janvier" in record["recommandations_gestion"]
    assert record["tendance_annuelle"] == 0.0
    assert record["stock_actuel"] == 30
    assert record["ventes_periode_reference"] == 1300.0
    assert len(record["coefficients_mensuels"]) == 12
    assert record["coefficients_mensuels"][11]["ventes_moyennes"] == 400.0

    previsions = record["previsions_prochains_mois"]
    assert len(previsions) == 6
    assert previsions[0]["mois"] == "2025-04"
    assert previsions[0]["ventes_prevues"] == 50


def test_summary_and_tops(history):
    result = analyze_seasonality(history, NOW)

    synthese = result["synthese"]
    assert synthese["repartition_saisonnalite"] == {
        "forte": 1,
        "moyenne": 0,
        "faible": 0,
        "aucune": 1,
    }
    assert synthese["produits_forte_saisonnalite"] == 1
    assert synthese["produits_surveillance_critique"] == 1

    tops = result["top_saisonniers"]
    assert [r["nom"] for r in tops["plus_forte_amplitude"]] == ["hiver"]
    assert tops["pics_hiver"][0]["nom"] == "hiver"
    assert tops["pics_ete"] == []
    assert [r["nom"] for r in tops["plus_impactants_ca"]] == ["hiver"]


def test_history_period_echoed(history):
    criteres = analyze_seasonality(history, NOW, nb_annees=3, horizon=2)["criteres"]

    assert criteres["periode_historique"] == {
        "debut": "2022-03-15",
        "fin": "2025-03-15",
        "nb_annees": 3,
    }
    assert criteres["seuils_amplitude"] == {"forte": 1.5, "moyenne": 0.8}
    assert criteres["nb_mois_prevision"] == 2


def test_history_start_on_leap_day():
    criteres = analyze_seasonality([], date(2024, 2, 29), nb_annees=1)["criteres"]

    assert criteres["periode_historique"]["debut"] == "2023-02-28"


def test_same_input_same_output(history):
    assert analyze_seasonality(history, NOW) == analyze_seasonality(history, NOW)


def test_one_year_history_trend_includes_current_year(make_facts):
    product = make_facts(
        sales={**_year(2024, [10] * 12), **{(2025, m): 30 for m in range(1, 7)}},
        nom="progression",
    )

    result = analyze_seasonality([product], date(2025, 6, 15), nb_annees=1)

    record = result["produits_saisonniers"][0]
    # (180 - 120) / 120 over one year
    assert record["tendance_annuelle"] == 50.0
    assert "Tendance croissante forte (+50.0%/an)" in record["recommandations_gestion"]
