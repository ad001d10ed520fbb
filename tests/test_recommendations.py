from dataclasses import replace
from datetime import datetime

import pytest

from rebanho.metrics import compute_herd_metrics
from rebanho.recommendations import RegionalBenchmark, generate_recommendations


@pytest.fixture
def baseline():
    """Healthy indicators that trigger no rule."""
    empty = compute_herd_metrics([], [], [], [], [], now=datetime(2024, 6, 15))
    return replace(
        empty,
        average_daily_gain=0.8,
        cost_per_arroba=200.0,
        margin_percent=30.0,
        stocking_rate=1.2,
        total_income=50000.0,
        total_area=10.0,
    )


def rule_ids(metrics, benchmark=None):
    return [rec.id for rec in generate_recommendations(metrics, benchmark)]


def test_no_recommendations_for_healthy_herd(baseline):
    assert rule_ids(baseline) == []


def test_empty_data_asks_for_financial_entries():
    empty = compute_herd_metrics([], [], [], [], [], now=datetime(2024, 6, 15))

    assert rule_ids(empty) == ['MRGM002']


@pytest.mark.parametrize('changes, expected', [
    ({'average_daily_gain': 0.5}, ['GMD001']),
    ({'cost_per_arroba': 250.0}, ['CUST001']),
    ({'margin_percent': 10.0}, ['MRGM001']),
    ({'stocking_rate': 0.5}, ['LTC001']),
    ({'stocking_rate': 1.6}, ['LTC002']),
    ({'total_income': 1000.0}, ['RPH001']),
])
def test_each_rule(baseline, changes, expected):
    assert rule_ids(replace(baseline, **changes)) == expected


def test_cost_must_exceed_benchmark_by_ten_percent(baseline):
    assert rule_ids(replace(baseline, cost_per_arroba=240.0)) == []
    assert rule_ids(replace(baseline, cost_per_arroba=243.0)) == ['CUST001']


def test_custom_benchmark(baseline):
    strict = RegionalBenchmark(average_daily_gain=1.5)

    assert rule_ids(baseline, strict) == ['GMD001']


def test_non_finite_values_are_treated_as_zero(baseline):
    metrics = replace(baseline, stocking_rate=float('inf'), cost_per_arroba=float('nan'))

    assert rule_ids(metrics) == []


def test_revenue_per_hectare_needs_area(baseline):
    assert rule_ids(replace(baseline, total_income=1000.0, total_area=0.0)) == []


def test_recommendation_serializes(baseline):
    rec = generate_recommendations(replace(baseline, average_daily_gain=0.5))[0]

    assert rec.to_dict()['priority'] == 'high'
    assert rec.to_dict()['category'] == 'Nutrition'
