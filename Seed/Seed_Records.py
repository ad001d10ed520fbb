import json
import sys

import pandas as pd
from rebanho import create_app, db
from rebanho.models import Animal, COLLECTIONS, read_fields
from rebanho.utils import generate_record_id, generate_animal_tag

# --- IMPORTANT ---
# Path of the JSON dump with one list per collection
# (animals, weighing_records, financial_transactions, pastures, planning).
DEFAULT_DUMP_PATH = 'db.json'

# Values used by the original web client, mapped to the ones the API expects.
VALUE_ALIASES = {
    'ativo': 'active', 'vendido': 'sold', 'morto': 'dead',
    'receita': 'income', 'despesa': 'expense',
    'pago': 'paid', 'pendente': 'pending', 'cancelado': 'canceled',
    'planejado': 'planned', 'em_andamento': 'in_progress', 'concluido': 'completed',
    'vacinacao': 'vaccination',
    'disponivel': 'available', 'ocupado': 'occupied', 'descanso': 'resting', 'manutencao': 'maintenance',
}

def _translate(value):
    if isinstance(value, str):
        return VALUE_ALIASES.get(value.strip().lower(), value)
    return value

def seed_records_database(dump_path=DEFAULT_DUMP_PATH):
    print(f"Reading JSON dump from {dump_path}...")
    try:
        with open(dump_path, encoding='utf-8') as infile:
            dump = json.load(infile)
    except FileNotFoundError:
        print(f"Error: {dump_path} not found. Aborting.")
        return

    # Clear the existing collections before importing.
    for model in COLLECTIONS.values():
        db.session.query(model).delete()
    print("Cleared existing collections.")

    for collection, model in COLLECTIONS.items():
        rows = dump.get(collection) or []
        if not rows:
            continue

        # Missing keys come back as NaN; turn them into None for the converters.
        df = pd.DataFrame(rows).astype(object)
        df = df.where(pd.notnull(df), None)
        for column in ('status', 'type'):
            if column in df.columns:
                df[column] = df[column].map(_translate)

        staged = 0
        for index, row in df.iterrows():
            record_data = row.to_dict()
            try:
                values = read_fields(model, record_data)
            except ValueError as e:
                print(f"Warning: Skipping {collection} row {index}: {e}")
                continue

            missing = [field for field in model.REQUIRED_FIELDS if values.get(field) is None]
            if missing:
                print(f"Warning: Skipping {collection} row {index}, missing {', '.join(missing)}.")
                continue

            values = {field: value for field, value in values.items() if value is not None}
            if model is Animal and not values.get('animal_id'):
                values['animal_id'] = generate_animal_tag()

            record_id = record_data.get('id') or generate_record_id(collection)
            db.session.add(model(id=str(record_id), **values))
            staged += 1

        print(f"Staged {staged} of {len(df)} {collection} records.")

    try:
        db.session.commit()
        print("Import finished successfully!")
    except Exception as e:
        db.session.rollback()
        print(f"An error occurred during commit: {e}")
        raise

if __name__ == '__main__':
    app = create_app()
    with app.app_context():
        seed_records_database(sys.argv[1] if len(sys.argv) > 1 else DEFAULT_DUMP_PATH)
