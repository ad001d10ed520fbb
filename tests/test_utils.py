from datetime import date, datetime, timedelta, timezone

import pytest

from rebanho.metrics import PastureSnapshot, PlanSnapshot, TransactionSnapshot, WeighingSnapshot
from rebanho.utils import (
    calculate_weight_history_with_gmd, camel_case, coerce_field, generate_animal_tag,
    generate_record_id, parse_datetime, summarize_pastures, summarize_plans,
    summarize_transactions, to_float,
)


@pytest.mark.parametrize('value, expected', [
    ('2024-03-05', datetime(2024, 3, 5)),
    ('2024-03-05T10:30:00', datetime(2024, 3, 5, 10, 30)),
    ('2024-03-05T10:30:00.000Z', datetime(2024, 3, 5, 10, 30)),
    ('2024-03-05T10:30:00-03:00', datetime(2024, 3, 5, 13, 30)),
    ({'$date': '2024-03-05T00:00:00Z'}, datetime(2024, 3, 5)),
    (date(2024, 3, 5), datetime(2024, 3, 5)),
    (datetime(2024, 3, 5, 1, tzinfo=timezone.utc), datetime(2024, 3, 5, 1)),
    (1709596800000, datetime(2024, 3, 5)),
])
def test_parse_datetime_formats(value, expected):
    assert parse_datetime(value) == expected


@pytest.mark.parametrize('value', [None, '', '   ', 'not-a-date', '2024-13-45', True, [2024]])
def test_parse_datetime_returns_none_for_bad_values(value):
    assert parse_datetime(value) is None


@pytest.mark.parametrize('value, expected', [
    (None, 0.0), ('', 0.0), ('abc', 0.0), (float('nan'), 0.0), (float('inf'), 0.0),
    (True, 0.0), ('12.5', 12.5), (7, 7.0),
])
def test_to_float(value, expected):
    assert to_float(value) == expected


def test_to_float_custom_default():
    assert to_float('x', default=None) is None


def test_camel_case():
    assert camel_case('animal_id') == 'animalId'
    assert camel_case('related_entity_id') == 'relatedEntityId'
    assert camel_case('weight') == 'weight'


class TestCoerceField:

    def test_blank_values_become_none(self):
        assert coerce_field('float', '') is None
        assert coerce_field('datetime', None) is None

    def test_conversions(self):
        assert coerce_field('float', '450.5') == 450.5
        assert coerce_field('int', '12') == 12
        assert coerce_field('choice', ' Paid ') == 'paid'
        assert coerce_field('datetime', '2024-01-02') == datetime(2024, 1, 2)
        assert coerce_field('bool', 'true') is True
        assert coerce_field('list', 'a, b,,c') == ['a', 'b', 'c']

    @pytest.mark.parametrize('kind, value', [
        ('float', 'heavy'), ('int', 'ten'), ('datetime', '31/31/2024'), ('bool', 'maybe'), ('list', 5),
    ])
    def test_malformed_values_raise(self, kind, value):
        with pytest.raises(ValueError):
            coerce_field(kind, value)


def test_generated_identifiers_are_unique():
    ids = {generate_record_id('animals') for _ in range(50)}
    tags = {generate_animal_tag() for _ in range(50)}

    assert len(ids) == 50
    assert all(record_id.startswith('animals_') for record_id in ids)
    assert len(tags) == 50
    assert all(tag.startswith('A') and len(tag) == 7 for tag in tags)


class TestWeightHistory:

    def test_accumulated_and_period_gmd(self):
        day0 = datetime(2024, 1, 1)
        records = [
            WeighingSnapshot(id='w3', animal_id='X', weight=350, date=day0 + timedelta(days=20)),
            WeighingSnapshot(id='w1', animal_id='X', weight=300, date=day0),
            WeighingSnapshot(id='w2', animal_id='X', weight=320, date=day0 + timedelta(days=10)),
            WeighingSnapshot(id='bad', animal_id='X', weight=999, date=None),
        ]

        history = calculate_weight_history_with_gmd(records)

        assert [entry['id'] for entry in history] == ['w1', 'w2', 'w3']
        assert history[0]['gmd_accumulated_kg'] == 0
        assert history[0]['gmd_period_kg'] == 0
        assert history[1]['gmd_period_kg'] == 2.0
        assert history[2]['gmd_accumulated_kg'] == 2.5
        assert history[2]['gmd_period_kg'] == 3.0
        assert history[2]['date'] == '2024-01-21'

    def test_empty_history(self):
        assert calculate_weight_history_with_gmd([]) == []


def test_summarize_transactions():
    summary = summarize_transactions([
        TransactionSnapshot('income', 'paid', 1000),
        TransactionSnapshot('income', 'pending', 200),
        TransactionSnapshot('expense', 'paid', 300),
        TransactionSnapshot('expense', 'pending', 50),
        TransactionSnapshot('expense', 'canceled', 99),
    ])

    assert summary == {
        'realized_income': 1000,
        'realized_expense': 300,
        'pending_income': 200,
        'pending_expense': 50,
        'balance': 700,
    }


def test_summarize_pastures():
    summary = summarize_pastures([
        PastureSnapshot(area=10, capacity=20, current_animals=15, status='occupied'),
        PastureSnapshot(area=5.5, capacity=10, current_animals=0, status='resting'),
        PastureSnapshot(area=4, capacity=8, current_animals=0, status='available'),
    ])

    assert summary['total_area'] == 19.5
    assert summary['total_capacity'] == 38
    assert summary['total_animals'] == 15
    assert summary['pastures_by_status'] == {'available': 1, 'occupied': 1, 'resting': 1, 'maintenance': 0}


def test_summarize_plans():
    now = datetime(2024, 6, 15)
    summary = summarize_plans([
        PlanSnapshot(id='a', type='rotation', status='in_progress', end_date=now - timedelta(days=1)),
        PlanSnapshot(id='b', type='rotation', status='completed', end_date=now - timedelta(days=1)),
        PlanSnapshot(id='c', type='vaccination', status='planned', end_date=now + timedelta(days=1)),
        PlanSnapshot(id='d', type='vaccination', status='planned', end_date=None),
    ], now)

    assert summary == {'total_plans': 4, 'in_progress': 1, 'completed': 1, 'overdue': 1}


def test_summarize_plans_needs_a_valid_now():
    plans = [PlanSnapshot(id='a', type='rotation', status='planned', end_date=datetime(2024, 1, 1))]

    with pytest.raises(ValueError):
        summarize_plans(plans, 'not-a-date')
