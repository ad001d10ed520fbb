from . import db
from .metrics import AnimalSnapshot, WeighingSnapshot, TransactionSnapshot, PastureSnapshot, PlanSnapshot
from .utils import camel_case, coerce_field, utcnow

def _iso(value):
    """Serializes an optional datetime column."""
    return value.isoformat() if value else None

class Animal(db.Model):
    """Represents a single animal of the herd."""
    __tablename__ = 'animals'

    # Storage key (e.g. 'animals_1718000000000') and the external ear tag.
    id = db.Column(db.String(64), primary_key=True)
    animal_id = db.Column(db.String(32), unique=True, nullable=False)
    name = db.Column(db.String(100), nullable=True)
    species = db.Column(db.String(50), nullable=True)
    breed = db.Column(db.String(50), nullable=True)
    birth_date = db.Column(db.DateTime, nullable=True)
    gender = db.Column(db.String(10), nullable=True)
    weight = db.Column(db.Float, nullable=False, default=0.0)
    status = db.Column(db.String(20), nullable=False, default='active') # active, sold, dead
    health_status = db.Column(db.String(50), nullable=True)
    location = db.Column(db.String(100), nullable=True)
    purchase_price = db.Column(db.Float, nullable=True) # Optional field
    purchase_date = db.Column(db.DateTime, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    mother_id = db.Column(db.String(32), nullable=True)
    father_id = db.Column(db.String(32), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    # Field name -> kind, used by the generic create/update routes.
    FIELDS = {
        'animal_id': 'text', 'name': 'text', 'species': 'text', 'breed': 'text',
        'birth_date': 'datetime', 'gender': 'text', 'weight': 'float', 'status': 'choice',
        'health_status': 'text', 'location': 'text', 'purchase_price': 'float',
        'purchase_date': 'datetime', 'notes': 'text', 'mother_id': 'text', 'father_id': 'text',
    }
    REQUIRED_FIELDS = ('weight',)
    NON_NEGATIVE_FIELDS = ('weight', 'purchase_price')

    def to_dict(self):
        """Serializes the Animal object to a dictionary."""
        return {
            'id': self.id,
            'animal_id': self.animal_id,
            'name': self.name,
            'species': self.species,
            'breed': self.breed,
            'birth_date': _iso(self.birth_date),
            'gender': self.gender,
            'weight': self.weight,
            'status': self.status,
            'health_status': self.health_status,
            'location': self.location,
            'purchase_price': self.purchase_price,
            'purchase_date': _iso(self.purchase_date),
            'notes': self.notes,
            'mother_id': self.mother_id,
            'father_id': self.father_id,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }

    def to_snapshot(self):
        return AnimalSnapshot.from_record(self.to_dict())

    def __repr__(self):
        return f'<Animal {self.animal_id}>'

class WeighingRecord(db.Model):
    """Represents a single weight measurement of an animal."""
    __tablename__ = 'weighing_records'

    id = db.Column(db.String(64), primary_key=True)
    # Points at Animal.animal_id (the ear tag), not at the storage key.
    animal_id = db.Column(db.String(32), nullable=False, index=True)
    weight = db.Column(db.Float, nullable=False)
    date = db.Column(db.DateTime, nullable=False)
    notes = db.Column(db.Text, nullable=True)
    measured_by = db.Column(db.String(100), nullable=True)
    location = db.Column(db.String(100), nullable=True)
    purpose = db.Column(db.String(50), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    FIELDS = {
        'animal_id': 'text', 'weight': 'float', 'date': 'datetime', 'notes': 'text',
        'measured_by': 'text', 'location': 'text', 'purpose': 'text',
    }
    REQUIRED_FIELDS = ('animal_id', 'weight', 'date')
    NON_NEGATIVE_FIELDS = ('weight',)

    def to_dict(self):
        return {
            'id': self.id,
            'animal_id': self.animal_id,
            'weight': self.weight,
            'date': _iso(self.date),
            'notes': self.notes,
            'measured_by': self.measured_by,
            'location': self.location,
            'purpose': self.purpose,
            'created_at': _iso(self.created_at),
        }

    def to_snapshot(self):
        return WeighingSnapshot.from_record(self.to_dict())

    def __repr__(self):
        return f'<WeighingRecord for animal {self.animal_id} on {self.date}>'

class FinancialTransaction(db.Model):
    """Represents an income or expense entry."""
    __tablename__ = 'financial_transactions'

    id = db.Column(db.String(64), primary_key=True)
    transaction_id = db.Column(db.String(32), nullable=True)
    type = db.Column(db.String(20), nullable=False) # income, expense
    category = db.Column(db.String(50), nullable=True)
    subcategory = db.Column(db.String(50), nullable=True)
    amount = db.Column(db.Float, nullable=False, default=0.0)
    description = db.Column(db.String(255), nullable=True)
    date = db.Column(db.DateTime, nullable=True)
    payment_method = db.Column(db.String(50), nullable=True)
    status = db.Column(db.String(20), nullable=False, default='pending') # pending, paid, canceled
    tags = db.Column(db.JSON, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    related_entity = db.Column(db.String(50), nullable=True)
    related_entity_id = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    FIELDS = {
        'transaction_id': 'text', 'type': 'choice', 'category': 'text', 'subcategory': 'text',
        'amount': 'float', 'description': 'text', 'date': 'datetime', 'payment_method': 'text',
        'status': 'choice', 'tags': 'list', 'notes': 'text', 'related_entity': 'text',
        'related_entity_id': 'text',
    }
    REQUIRED_FIELDS = ('type', 'amount')
    NON_NEGATIVE_FIELDS = ('amount',)

    def to_dict(self):
        return {
            'id': self.id,
            'transaction_id': self.transaction_id,
            'type': self.type,
            'category': self.category,
            'subcategory': self.subcategory,
            'amount': self.amount,
            'description': self.description,
            'date': _iso(self.date),
            'payment_method': self.payment_method,
            'status': self.status,
            'tags': self.tags or [],
            'notes': self.notes,
            'related_entity': self.related_entity,
            'related_entity_id': self.related_entity_id,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }

    def to_snapshot(self):
        return TransactionSnapshot.from_record(self.to_dict())

    def __repr__(self):
        return f'<FinancialTransaction {self.type} {self.amount} ({self.status})>'

class Pasture(db.Model):
    """Represents a pasture (paddock) of the ranch."""
    __tablename__ = 'pastures'

    id = db.Column(db.String(64), primary_key=True)
    pasture_id = db.Column(db.String(32), nullable=True)
    name = db.Column(db.String(100), nullable=False)
    area = db.Column(db.Float, nullable=False, default=0.0) # hectares
    capacity = db.Column(db.Integer, nullable=True) # head count
    current_animals = db.Column(db.Integer, nullable=True)
    status = db.Column(db.String(20), nullable=False, default='available') # available, occupied, resting, maintenance
    grass_type = db.Column(db.String(50), nullable=True)
    last_rotation = db.Column(db.DateTime, nullable=True)
    next_rotation = db.Column(db.DateTime, nullable=True)
    soil_quality = db.Column(db.String(50), nullable=True)
    water_source = db.Column(db.Boolean, nullable=True)
    fencing = db.Column(db.String(50), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    FIELDS = {
        'pasture_id': 'text', 'name': 'text', 'area': 'float', 'capacity': 'int',
        'current_animals': 'int', 'status': 'choice', 'grass_type': 'text',
        'last_rotation': 'datetime', 'next_rotation': 'datetime', 'soil_quality': 'text',
        'water_source': 'bool', 'fencing': 'text', 'notes': 'text',
    }
    REQUIRED_FIELDS = ('name', 'area')
    NON_NEGATIVE_FIELDS = ('area', 'capacity', 'current_animals')

    def to_dict(self):
        return {
            'id': self.id,
            'pasture_id': self.pasture_id,
            'name': self.name,
            'area': self.area,
            'capacity': self.capacity,
            'current_animals': self.current_animals,
            'status': self.status,
            'grass_type': self.grass_type,
            'last_rotation': _iso(self.last_rotation),
            'next_rotation': _iso(self.next_rotation),
            'soil_quality': self.soil_quality,
            'water_source': self.water_source,
            'fencing': self.fencing,
            'notes': self.notes,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }

    def to_snapshot(self):
        return PastureSnapshot.from_record(self.to_dict())

    def __repr__(self):
        return f'<Pasture {self.name}>'

class PlanningItem(db.Model):
    """Represents a planned activity (vaccination, rotation, purchase...)."""
    __tablename__ = 'planning'

    id = db.Column(db.String(64), primary_key=True)
    plan_id = db.Column(db.String(32), nullable=True)
    title = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text, nullable=True)
    type = db.Column(db.String(50), nullable=False)
    start_date = db.Column(db.DateTime, nullable=True)
    end_date = db.Column(db.DateTime, nullable=True)
    status = db.Column(db.String(20), nullable=False, default='planned') # planned, in_progress, completed, canceled
    priority = db.Column(db.String(20), nullable=True)
    assigned_to = db.Column(db.String(100), nullable=True)
    related_animals = db.Column(db.JSON, nullable=True)
    related_pastures = db.Column(db.JSON, nullable=True)
    estimated_cost = db.Column(db.Float, nullable=True)
    actual_cost = db.Column(db.Float, nullable=True)
    completion_percentage = db.Column(db.Float, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    FIELDS = {
        'plan_id': 'text', 'title': 'text', 'description': 'text', 'type': 'choice',
        'start_date': 'datetime', 'end_date': 'datetime', 'status': 'choice', 'priority': 'text',
        'assigned_to': 'text', 'related_animals': 'list', 'related_pastures': 'list',
        'estimated_cost': 'float', 'actual_cost': 'float', 'completion_percentage': 'float',
        'notes': 'text',
    }
    REQUIRED_FIELDS = ('title', 'type', 'end_date')
    NON_NEGATIVE_FIELDS = ('estimated_cost', 'actual_cost', 'completion_percentage')

    def to_dict(self):
        return {
            'id': self.id,
            'plan_id': self.plan_id,
            'title': self.title,
            'description': self.description,
            'type': self.type,
            'start_date': _iso(self.start_date),
            'end_date': _iso(self.end_date),
            'status': self.status,
            'priority': self.priority,
            'assigned_to': self.assigned_to,
            'related_animals': self.related_animals or [],
            'related_pastures': self.related_pastures or [],
            'estimated_cost': self.estimated_cost,
            'actual_cost': self.actual_cost,
            'completion_percentage': self.completion_percentage,
            'notes': self.notes,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }

    def to_snapshot(self):
        return PlanSnapshot.from_record(self.to_dict())

    def __repr__(self):
        return f'<PlanningItem {self.title} ({self.status})>'

# Collection name (as used in the URLs and the JSON dump) -> model.
COLLECTIONS = {
    'animals': Animal,
    'weighing_records': WeighingRecord,
    'financial_transactions': FinancialTransaction,
    'pastures': Pasture,
    'planning': PlanningItem,
}

def read_fields(model, data):
    """
    Picks the model's fields out of an incoming record (snake_case or
    camelCase keys) and converts them. Raises ValueError naming the field,
    also for negative weights, amounts, areas and counts.
    """
    values = {}
    for field, kind in model.FIELDS.items():
        for key in (field, camel_case(field)):
            if key in data:
                try:
                    values[field] = coerce_field(kind, data[key])
                except ValueError as e:
                    raise ValueError(f"Invalid value for '{field}': {e}")
                break

    for field in model.NON_NEGATIVE_FIELDS:
        if values.get(field) is not None and values[field] < 0:
            raise ValueError(f"Invalid value for '{field}': must not be negative")
    return values

def non_clearable_fields(model):
    """Required fields plus every NOT NULL column; an update may not blank them."""
    not_null = [column.name for column in model.__table__.columns if not column.nullable]
    return set(model.REQUIRED_FIELDS) | {field for field in model.FIELDS if field in not_null}
