from flask import Blueprint, request, jsonify, current_app, abort
from sqlalchemy.exc import IntegrityError
from sqlalchemy import func
from .models import (Animal, WeighingRecord, FinancialTransaction, Pasture, PlanningItem, COLLECTIONS,
                     read_fields, non_clearable_fields)
from . import db
from .metrics import MetricsConfig, compute_herd_metrics, build_alerts
from .recommendations import RegionalBenchmark, generate_recommendations
from .utils import (generate_record_id, generate_animal_tag, parse_datetime,
                    to_text, utcnow, calculate_weight_history_with_gmd, summarize_transactions,
                    summarize_pastures, summarize_plans)


api = Blueprint('api', __name__)

@api.errorhandler(404)
def not_found(error):
    return jsonify({'error': getattr(error, 'description', None) or 'Resource not found.'}), 404

def _get_collection_model(collection):
    model = COLLECTIONS.get(collection)
    if model is None:
        abort(404, description=f"Unknown collection '{collection}'.")
    return model

def _now_from_request():
    """Reference time: the optional 'now' query parameter, else the clock."""
    now_str = request.args.get('now')
    if not now_str:
        return utcnow()
    now = parse_datetime(now_str)
    if now is None:
        raise ValueError('Invalid date format for now. Please use ISO-8601 (YYYY-MM-DD).')
    return now

def _sync_animal_weight(weighing):
    """
    Copies the weight of a new weighing onto the animal when it is the most
    recent measurement, so Animal.weight stays the current weight.
    """
    animal = Animal.query.filter_by(animal_id=weighing.animal_id).first()
    latest_date = db.session.query(func.max(WeighingRecord.date)) \
                            .filter(WeighingRecord.animal_id == weighing.animal_id) \
                            .scalar()
    if latest_date is None or weighing.date >= latest_date:
        animal.weight = weighing.weight
        animal.updated_at = utcnow()

def _refresh_animal_weight(tag):
    """Resets an animal's weight to its latest weighing after a weighing was edited."""
    animal = Animal.query.filter_by(animal_id=tag).first()
    latest = WeighingRecord.query.filter_by(animal_id=tag) \
                                 .order_by(WeighingRecord.date.desc(), WeighingRecord.created_at.desc()) \
                                 .first()
    if animal is not None and latest is not None:
        animal.weight = latest.weight
        animal.updated_at = utcnow()

# --- General Routes ---

@api.route('/')
def home():
    """A simple test route to confirm the API is running."""
    return jsonify({'message': 'Rebanho Digital backend is running!', 'timestamp': utcnow().isoformat()})

# --- Dashboard ---

@api.route('/dashboard', methods=['GET'])
def get_dashboard():
    """
    Runs the herd metrics over the current contents of the five collections.
    Accepts an optional 'now' query parameter so results can be reproduced.
    """
    try:
        now = _now_from_request()
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    config = MetricsConfig.from_mapping(current_app.config.get('HERD_METRICS'))

    metrics = compute_herd_metrics(
        animals=[a.to_snapshot() for a in Animal.query.all()],
        transactions=[t.to_snapshot() for t in FinancialTransaction.query.all()],
        pastures=[p.to_snapshot() for p in Pasture.query.all()],
        plans=[p.to_snapshot() for p in PlanningItem.query.all()],
        weighings=[w.to_snapshot() for w in WeighingRecord.query.all()],
        now=now,
        config=config,
    )
    alerts = build_alerts(metrics, config)
    recommendations = generate_recommendations(metrics, RegionalBenchmark(cost_per_arroba=config.cost_target))

    return jsonify({
        'generated_at': now.isoformat(),
        'metrics': metrics.to_dict(),
        'alerts': [alert.to_dict() for alert in alerts],
        'recommendations': [rec.to_dict() for rec in recommendations],
    })

# --- Collection summaries ---

@api.route('/financial_transactions/summary', methods=['GET'])
def get_financial_summary():
    """Realized and pending totals for the financial page."""
    transactions = [t.to_snapshot() for t in FinancialTransaction.query.all()]
    return jsonify(summarize_transactions(transactions))

@api.route('/pastures/summary', methods=['GET'])
def get_pastures_summary():
    """Area, capacity and status counts for the pastures page."""
    pastures = [p.to_snapshot() for p in Pasture.query.all()]
    return jsonify(summarize_pastures(pastures))

@api.route('/planning/summary', methods=['GET'])
def get_planning_summary():
    """In-progress, completed and overdue counts for the planning page."""
    try:
        now = _now_from_request()
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    plans = [p.to_snapshot() for p in PlanningItem.query.all()]
    return jsonify(summarize_plans(plans, now))

@api.route('/animals/<record_id>/weight_history', methods=['GET'])
def get_animal_weight_history(record_id):
    """Weight history of one animal, with accumulated and period GMD per weighing."""
    animal = db.get_or_404(Animal, record_id)
    weighings = WeighingRecord.query.filter_by(animal_id=animal.animal_id).all()

    return jsonify({
        'animal': animal.to_dict(),
        'weight_history': calculate_weight_history_with_gmd([w.to_snapshot() for w in weighings])
    })

# --- Generic CRUD Routes ---

@api.route('/<collection>', methods=['GET'])
def list_records(collection):
    """Lists every record of a collection, most recent first."""
    model = _get_collection_model(collection)
    records = model.query.order_by(model.created_at.desc()).all()
    return jsonify([record.to_dict() for record in records])

@api.route('/<collection>/<record_id>', methods=['GET'])
def get_record(collection, record_id):
    model = _get_collection_model(collection)
    record = db.get_or_404(model, record_id, description=f"No record '{record_id}' in {collection}.")
    return jsonify(record.to_dict())

@api.route('/<collection>', methods=['POST'])
def create_record(collection):
    """
    Creates a record in a collection. Identifiers are generated when the body
    does not carry one. New weighings also update the animal's current weight.
    """
    model = _get_collection_model(collection)
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return jsonify({'error': 'Missing JSON request body'}), 400

    try:
        values = read_fields(model, data)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    missing = [field for field in model.REQUIRED_FIELDS if values.get(field) is None]
    if missing:
        return jsonify({'error': f"Missing required fields: {', '.join(missing)}"}), 400

    # Drop explicit nulls so column defaults (status, timestamps) apply.
    values = {field: value for field, value in values.items() if value is not None}

    if model is Animal and not values.get('animal_id'):
        values['animal_id'] = generate_animal_tag()

    if model is WeighingRecord and not Animal.query.filter_by(animal_id=values['animal_id']).first():
        return jsonify({'error': f"Animal '{values['animal_id']}' not found."}), 404

    try:
        record = model(id=to_text(data.get('id')) or generate_record_id(collection), **values)
        if model is WeighingRecord:
            _sync_animal_weight(record)
        db.session.add(record)
        db.session.commit()
        current_app.logger.info("Created %s record %s", collection, record.id)
        return jsonify(record.to_dict()), 201

    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': f'A record with this identifier already exists in {collection}.'}), 409
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("Failed to create %s record", collection)
        return jsonify({'error': f'An unexpected error occurred: {str(e)}'}), 500

@api.route('/<collection>/<record_id>', methods=['PATCH'])
def update_record(collection, record_id):
    """
    Applies a partial update and stamps updated_at. Edited weighings re-sync
    the animal's weight, and a renamed ear tag carries its weighings along.
    """
    model = _get_collection_model(collection)
    record = db.get_or_404(model, record_id, description=f"No record '{record_id}' in {collection}.")
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return jsonify({'error': 'Missing JSON request body'}), 400

    try:
        values = read_fields(model, data)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    nulled = sorted(field for field in non_clearable_fields(model) if field in values and values[field] is None)
    if nulled:
        return jsonify({'error': f"Required fields cannot be empty: {', '.join(nulled)}"}), 400

    new_tag = values.get('animal_id')
    if model is WeighingRecord and new_tag and not Animal.query.filter_by(animal_id=new_tag).first():
        return jsonify({'error': f"Animal '{new_tag}' not found."}), 404

    try:
        old_tag = record.animal_id if model in (Animal, WeighingRecord) else None
        if model is Animal and new_tag and new_tag != old_tag:
            # Weighings reference the ear tag, so they follow the rename.
            WeighingRecord.query.filter_by(animal_id=old_tag).update({'animal_id': new_tag})

        for field, value in values.items():
            setattr(record, field, value)
        if hasattr(record, 'updated_at'):
            record.updated_at = utcnow()

        if model is WeighingRecord:
            for tag in {old_tag, record.animal_id}:
                _refresh_animal_weight(tag)
        db.session.commit()
        return jsonify(record.to_dict())

    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': 'This change conflicts with an existing record.'}), 409
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("Failed to update %s record %s", collection, record_id)
        return jsonify({'error': f'An unexpected error occurred: {str(e)}'}), 500

@api.route('/<collection>/<record_id>', methods=['DELETE'])
def delete_record(collection, record_id):
    """Deletes a record. Deleting an animal also deletes its weighings."""
    model = _get_collection_model(collection)
    record = db.get_or_404(model, record_id, description=f"No record '{record_id}' in {collection}.")
    try:
        if model is Animal:
            WeighingRecord.query.filter_by(animal_id=record.animal_id).delete()
        db.session.delete(record)
        db.session.commit()
        current_app.logger.info("Deleted %s record %s", collection, record_id)
        return jsonify({'message': f"Record '{record_id}' deleted from {collection}."})
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception("Failed to delete %s record %s", collection, record_id)
        return jsonify({'error': f'An unexpected error occurred: {str(e)}'}), 500
