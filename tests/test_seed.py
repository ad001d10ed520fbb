import importlib.util
import json
from pathlib import Path

import pytest

from rebanho.models import Animal, FinancialTransaction, PlanningItem, WeighingRecord

SEED_SCRIPT = Path(__file__).resolve().parent.parent / 'Seed' / 'Seed_Records.py'


@pytest.fixture
def seed_module():
    spec = importlib.util.spec_from_file_location('seed_records', SEED_SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def dump_path(tmp_path):
    dump = {
        'animals': [
            {'id': 'animals_1', 'animalId': 'A1', 'weight': 460, 'status': 'ativo'},
            {'id': 'animals_2', 'animalId': 'A2', 'weight': 380, 'status': 'Morto', 'breed': 'Nelore'},
            {'weight': 'unknown'},
        ],
        'weighing_records': [
            {'animalId': 'A1', 'weight': 440, 'date': '2024-01-01T00:00:00.000Z'},
            {'animalId': 'A1', 'weight': 460, 'date': '2024-01-21T00:00:00.000Z'},
            {'animalId': 'A1', 'weight': 470},
        ],
        'financial_transactions': [
            {'type': 'receita', 'amount': 1500, 'status': 'pago', 'tags': ['sale']},
            {'type': 'despesa', 'amount': 300, 'status': 'pendente'},
        ],
        'planning': [
            {'title': 'Vaccinate', 'type': 'vacinacao', 'status': 'planejado', 'endDate': '2024-06-20'},
        ],
    }
    path = tmp_path / 'db.json'
    path.write_text(json.dumps(dump), encoding='utf-8')
    return path


def test_import_translates_values_and_skips_bad_rows(app, seed_module, dump_path, capsys):
    seed_module.seed_records_database(str(dump_path))

    assert Animal.query.count() == 2
    assert {a.animal_id: a.status for a in Animal.query.all()} == {'A1': 'active', 'A2': 'dead'}
    assert WeighingRecord.query.count() == 2
    assert {(t.type, t.status) for t in FinancialTransaction.query.all()} == {('income', 'paid'), ('expense', 'pending')}
    assert PlanningItem.query.one().type == 'vaccination'
    assert 'Skipping animals row 2' in capsys.readouterr().out


def test_import_replaces_existing_records(app, seed_module, dump_path):
    seed_module.seed_records_database(str(dump_path))
    seed_module.seed_records_database(str(dump_path))

    assert Animal.query.count() == 2
    assert FinancialTransaction.query.count() == 2


def test_missing_dump_is_reported(app, seed_module, tmp_path, capsys):
    seed_module.seed_records_database(str(tmp_path / 'missing.json'))

    assert 'not found' in capsys.readouterr().out
