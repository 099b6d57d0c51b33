from dataclasses import replace
from datetime import date

import numpy as np
import pandas as pd
import pytest

from txn_core.engine import (
    account_age_distribution,
    amount_by_category,
    compute_kpis,
    daily_fraud_counts,
    daily_transaction_counts,
    filter_transactions,
    fraud_rate_by_country,
    histogram,
    recompute,
    search_table,
    user_transactions_distribution,
)
from txn_core.filters import FilterSelection


def _tuples(df: pd.DataFrame):
    return list(df.itertuples(index=False, name=None))


SELECTIONS = [
    FilterSelection(),
    FilterSelection(country="US"),
    FilterSelection(channel="web", fraud_only=True),
    FilterSelection(merchant_category="grocery"),
    FilterSelection(date_start=date(2024, 3, 2), date_end=date(2024, 3, 4)),
    FilterSelection(country="DE", channel="pos"),
    FilterSelection(country="Atlantis"),
    FilterSelection(date_start=date(2030, 1, 1)),
]


class TestScenarios:
    def test_all_rows(self, scenario_dataset, full_range):
        filtered = filter_transactions(scenario_dataset.frame, full_range)
        kpis = compute_kpis(filtered)
        assert kpis["transaction_count"] == 3
        assert kpis["total_amount"] == 350
        assert kpis["fraud_rate"] == pytest.approx(1 / 3)
        assert _tuples(daily_transaction_counts(filtered)) == [(date(2024, 1, 1), 2), (date(2024, 1, 2), 1)]

    def test_fraud_only(self, scenario_dataset, full_range):
        filtered = filter_transactions(scenario_dataset.frame, replace(full_range, fraud_only=True))
        kpis = compute_kpis(filtered)
        assert kpis["transaction_count"] == 1
        assert kpis["total_amount"] == 50
        assert kpis["fraud_rate"] == 1

    def test_range_excluding_all_dates(self, scenario_dataset):
        sel = FilterSelection(date_start=date(2023, 1, 1), date_end=date(2023, 12, 31))
        view = recompute(scenario_dataset.frame, sel)
        assert view["filtered"].empty
        assert view["kpis"] == {"transaction_count": 0, "total_amount": 0.0, "avg_amount": 0.0, "fraud_rate": 0.0}
        for key in (
            "daily_transactions",
            "daily_fraud",
            "amount_by_category",
            "fraud_rate_by_country",
            "account_age_distribution",
            "user_transactions_distribution",
        ):
            assert view[key].empty, key


class TestFilter:
    @pytest.mark.parametrize("selection", SELECTIONS)
    def test_is_order_preserving_subsequence(self, wider_dataset, selection):
        filtered = filter_transactions(wider_dataset.frame, selection)
        idx = list(filtered.index)
        assert idx == sorted(idx)
        assert set(idx) <= set(wider_dataset.frame.index)
        source = wider_dataset.frame
        pd.testing.assert_frame_equal(filtered, source[source.index.isin(idx)])

    def test_date_range_is_inclusive(self, wider_dataset):
        sel = FilterSelection(date_start=date(2024, 3, 2), date_end=date(2024, 3, 4))
        filtered = filter_transactions(wider_dataset.frame, sel)
        assert set(filtered["date"]) == {date(2024, 3, 2), date(2024, 3, 3), date(2024, 3, 4)}
        assert len(filtered) == 5

    def test_conjunction(self, wider_dataset):
        sel = FilterSelection(country="US", channel="web", merchant_category="electronics", fraud_only=True)
        filtered = filter_transactions(wider_dataset.frame, sel)
        assert len(filtered) == 1
        assert filtered.iloc[0]["amount"] == pytest.approx(999.99)

    def test_unknown_value_matches_nothing(self, wider_dataset):
        assert filter_transactions(wider_dataset.frame, FilterSelection(channel="carrier pigeon")).empty

    def test_inverted_range_is_empty(self, wider_dataset):
        sel = FilterSelection(date_start=date(2024, 3, 5), date_end=date(2024, 3, 1))
        assert filter_transactions(wider_dataset.frame, sel).empty

    def test_source_frame_untouched(self, wider_dataset):
        before = wider_dataset.frame.copy()
        recompute(wider_dataset.frame, FilterSelection(country="US", fraud_only=True))
        pd.testing.assert_frame_equal(wider_dataset.frame, before)


class TestKpis:
    @pytest.mark.parametrize("selection", SELECTIONS)
    def test_count_and_rate_bounds(self, wider_dataset, selection):
        filtered = filter_transactions(wider_dataset.frame, selection)
        kpis = compute_kpis(filtered)
        assert kpis["transaction_count"] == len(filtered)
        assert 0 <= kpis["fraud_rate"] <= 1
        if kpis["transaction_count"] == 0:
            assert kpis["fraud_rate"] == 0

    def test_nulls_excluded_from_sum_and_mean(self, wider_dataset):
        kpis = compute_kpis(wider_dataset.frame)
        assert kpis["total_amount"] == pytest.approx(1617.74)
        assert kpis["avg_amount"] == pytest.approx(1617.74 / 7)
        assert kpis["fraud_rate"] == pytest.approx(3 / 8)

    def test_all_null_amounts(self, wider_dataset):
        filtered = filter_transactions(wider_dataset.frame, FilterSelection(country="DE", channel="app"))
        kpis = compute_kpis(filtered)
        assert kpis["transaction_count"] == 1
        assert kpis["total_amount"] == 0.0
        assert kpis["avg_amount"] == 0.0
        assert not np.isnan(kpis["avg_amount"])


class TestAggregations:
    @pytest.mark.parametrize("selection", SELECTIONS)
    def test_partition_properties(self, wider_dataset, selection):
        filtered = filter_transactions(wider_dataset.frame, selection)
        kpis = compute_kpis(filtered)
        assert daily_transaction_counts(filtered)["transactions"].sum() == kpis["transaction_count"]
        assert amount_by_category(filtered)["total_amount"].sum() == pytest.approx(kpis["total_amount"])
        assert fraud_rate_by_country(filtered)["transactions"].sum() == kpis["transaction_count"]

    @pytest.mark.parametrize("selection", SELECTIONS)
    def test_recompute_is_idempotent(self, wider_dataset, selection):
        first = recompute(wider_dataset.frame, selection)
        second = recompute(wider_dataset.frame, selection)
        assert first["kpis"] == second["kpis"]
        for key, value in first.items():
            if isinstance(value, pd.DataFrame):
                pd.testing.assert_frame_equal(value, second[key])

    def test_daily_fraud_counts(self, wider_dataset):
        out = daily_fraud_counts(wider_dataset.frame)
        assert _tuples(out) == [
            (date(2024, 3, 1), 1),
            (date(2024, 3, 2), 1),
            (date(2024, 3, 3), 0),
            (date(2024, 3, 4), 1),
            (date(2024, 3, 5), 0),
        ]

    def test_daily_fraud_counts_has_no_absent_dates(self, wider_dataset):
        filtered = filter_transactions(wider_dataset.frame, FilterSelection(country="BR"))
        assert list(daily_fraud_counts(filtered)["date"]) == [date(2024, 3, 2), date(2024, 3, 4)]

    def test_amount_by_category_ranking(self, wider_dataset):
        out = amount_by_category(wider_dataset.frame)
        assert list(out["merchant_category"]) == ["electronics", "travel", "grocery"]
        assert out["total_amount"].iloc[0] == pytest.approx(1299.99)

    def test_amount_by_category_ties_break_by_name(self):
        frame = pd.DataFrame(
            {
                "merchant_category": ["zoo", "art", "mid"],
                "amount": [10.0, 10.0, 5.0],
            }
        )
        assert list(amount_by_category(frame)["merchant_category"]) == ["art", "zoo", "mid"]

    def test_fraud_rate_by_country(self, wider_dataset):
        out = fraud_rate_by_country(wider_dataset.frame)
        assert list(out.columns) == ["country", "transactions", "fraud_rate"]
        assert list(out["fraud_rate"]) == sorted(out["fraud_rate"])
        rates = dict(zip(out["country"], out["fraud_rate"]))
        assert rates["BR"] == pytest.approx(0.5)
        assert rates["US"] == pytest.approx(1 / 3)
        assert rates["Unknown"] == 0.0


class TestHistograms:
    def test_fixed_bin_count_over_min_max(self):
        out = histogram(pd.Series(range(10)), bins=5)
        assert len(out) == 5
        assert out["count"].sum() == 10
        assert out["bin_start"].iloc[0] == 0
        assert out["bin_end"].iloc[-1] == 9

    def test_default_bins(self, wider_dataset):
        out = account_age_distribution(wider_dataset.frame)
        assert len(out) == 30
        assert out["count"].sum() == 8

    def test_nulls_ignored(self):
        out = histogram(pd.Series([1.0, np.nan, 3.0]), bins=2)
        assert out["count"].sum() == 2

    def test_single_value(self):
        out = histogram(pd.Series([7, 7, 7]), bins=3)
        assert out["count"].sum() == 3

    def test_empty(self, wider_dataset):
        empty = wider_dataset.frame.iloc[0:0]
        assert account_age_distribution(empty).empty
        assert user_transactions_distribution(empty).empty
        assert list(histogram(pd.Series(dtype=float)).columns) == ["bin_start", "bin_end", "count"]

    def test_bins_must_be_positive(self):
        with pytest.raises(ValueError):
            histogram(pd.Series([1, 2]), bins=0)


class TestSearch:
    def test_case_insensitive_across_columns(self, wider_dataset):
        assert len(search_table(wider_dataset.frame, "ELECTRONICS")) == 2
        assert len(search_table(wider_dataset.frame, "2024-03-04")) == 2

    def test_blank_query_returns_everything(self, wider_dataset):
        assert len(search_table(wider_dataset.frame, "  ")) == len(wider_dataset.frame)

    def test_blank_query_does_not_expose_source_frame(self, wider_dataset):
        out = search_table(wider_dataset.frame, "")
        assert out is not wider_dataset.frame
        out.loc[out.index[0], "country"] = "XX"
        assert wider_dataset.frame["country"].iloc[0] == "US"
