"""
Herd performance metrics shown on the dashboard.

compute_herd_metrics() takes immutable snapshots of the five collections
(animals, financial transactions, pastures, planning items and weighing
records) plus an explicit `now`, and returns one immutable HerdMetrics record.
Everything is recomputed from scratch on each call; nothing here touches the
database.
"""
import logging
import math
from collections import defaultdict
from dataclasses import dataclass, fields

from .utils import days_between, normalize_choice, parse_datetime, to_float, to_text

logger = logging.getLogger(__name__)

ANIMAL_ACTIVE = 'active'
ANIMAL_DEAD = 'dead'
TRANSACTION_INCOME = 'income'
TRANSACTION_EXPENSE = 'expense'
TRANSACTION_PAID = 'paid'
PLAN_COMPLETED = 'completed'
PLAN_VACCINATION = 'vaccination'


@dataclass(frozen=True)
class MetricsConfig:
    """Domain constants and score weights. Every field can be overridden."""
    animal_unit_kg: float = 450.0      # live weight of one animal-unit (UA)
    sale_weight_kg: float = 450.0      # weight at which an animal is ready for sale
    arroba_kg: float = 15.0
    cost_target: float = 220.0         # regional cost per arroba benchmark
    overstock_threshold: float = 1.5   # UA/ha
    margin_weight: float = 0.5
    adg_weight: float = 10.0
    stocking_weight: float = 10.0
    cost_penalty: float = 20.0
    carcass_yield_placeholder: float = 50.0

    # Used as divisors.
    POSITIVE_SETTINGS = ('animal_unit_kg', 'arroba_kg')

    @classmethod
    def from_mapping(cls, overrides):
        """Builds a config from a dict of overrides, e.g. app.config['HERD_METRICS']."""
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in (overrides or {}).items():
            if key not in known:
                logger.warning("Ignoring unknown herd metrics setting '%s'", key)
                continue
            number = to_float(value, default=None)
            if number is None:
                raise ValueError(f"Herd metrics setting '{key}' must be a finite number, got {value!r}")
            if key in cls.POSITIVE_SETTINGS and number <= 0:
                raise ValueError(f"Herd metrics setting '{key}' must be greater than zero, got {value!r}")
            values[key] = number
        return cls(**values)


def _pick(record, *keys):
    """First present key among the snake_case and camelCase spellings."""
    for key in keys:
        if key in record and record[key] is not None:
            return record[key]
    return None


# --- Snapshots ---

@dataclass(frozen=True)
class AnimalSnapshot:
    id: str = None
    animal_id: str = None
    status: str = ''
    weight: float = 0.0
    purchase_price: float = None

    @classmethod
    def from_record(cls, record):
        return cls(
            id=to_text(_pick(record, 'id', '_id')),
            animal_id=to_text(_pick(record, 'animal_id', 'animalId')),
            status=normalize_choice(record.get('status')),
            weight=to_float(record.get('weight')),
            purchase_price=to_float(_pick(record, 'purchase_price', 'purchasePrice'), default=None),
        )


@dataclass(frozen=True)
class WeighingSnapshot:
    id: str = None
    animal_id: str = None
    weight: float = 0.0
    date: object = None   # naive UTC datetime, None when missing or unparseable

    @classmethod
    def from_record(cls, record):
        return cls(
            id=to_text(_pick(record, 'id', '_id')),
            animal_id=to_text(_pick(record, 'animal_id', 'animalId')),
            weight=to_float(record.get('weight')),
            date=parse_datetime(record.get('date')),
        )


@dataclass(frozen=True)
class TransactionSnapshot:
    type: str = ''
    status: str = ''
    amount: float = 0.0

    @classmethod
    def from_record(cls, record):
        return cls(
            type=normalize_choice(record.get('type')),
            status=normalize_choice(record.get('status')),
            amount=to_float(record.get('amount')),
        )


@dataclass(frozen=True)
class PastureSnapshot:
    area: float = 0.0
    capacity: float = 0.0
    current_animals: float = 0.0
    status: str = ''

    @classmethod
    def from_record(cls, record):
        return cls(
            area=to_float(record.get('area')),
            capacity=to_float(record.get('capacity')),
            current_animals=to_float(_pick(record, 'current_animals', 'currentAnimals')),
            status=normalize_choice(record.get('status')),
        )


@dataclass(frozen=True)
class PlanSnapshot:
    id: str = None
    title: str = None
    type: str = ''
    status: str = ''
    end_date: object = None

    @classmethod
    def from_record(cls, record):
        return cls(
            id=to_text(_pick(record, 'id', '_id')),
            title=to_text(record.get('title')),
            type=normalize_choice(record.get('type')),
            status=normalize_choice(record.get('status')),
            end_date=parse_datetime(_pick(record, 'end_date', 'endDate')),
        )

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'type': self.type,
            'status': self.status,
            'end_date': self.end_date.isoformat() if self.end_date else None,
        }


# --- Results ---

@dataclass(frozen=True)
class HerdMetrics:
    total_income: float
    total_expense: float
    net_profit: float
    margin_percent: float
    total_area: float
    active_live_weight: float
    animal_units: float
    stocking_rate: float
    average_daily_gain: float
    per_animal_adg: tuple          # ((animal_id, adg), ...) in input order
    total_animals: int
    mortality_rate: float
    carcass_yield: float
    cost_per_arroba: float
    ready_for_sale: int
    overdue_plans: int
    next_vaccination: PlanSnapshot
    score: int

    def to_dict(self):
        return {
            'total_income': self.total_income,
            'total_expense': self.total_expense,
            'net_profit': self.net_profit,
            'margin_percent': self.margin_percent,
            'total_area': self.total_area,
            'active_live_weight': self.active_live_weight,
            'animal_units': self.animal_units,
            'stocking_rate': self.stocking_rate,
            'average_daily_gain': self.average_daily_gain,
            'per_animal_adg': {animal_id: adg for animal_id, adg in self.per_animal_adg},
            'total_animals': self.total_animals,
            'mortality_rate': self.mortality_rate,
            'carcass_yield': self.carcass_yield,
            'cost_per_arroba': self.cost_per_arroba,
            'ready_for_sale': self.ready_for_sale,
            'overdue_plans': self.overdue_plans,
            'next_vaccination': self.next_vaccination.to_dict() if self.next_vaccination else None,
            'score': self.score,
        }


@dataclass(frozen=True)
class Alert:
    code: str
    active: bool
    severity: str
    message: str

    def to_dict(self):
        return {'code': self.code, 'active': self.active, 'severity': self.severity, 'message': self.message}


# --- Calculations ---

def calculate_animal_adg(animals, weighings):
    """
    Average daily gain per animal, from its chronologically first and last
    weighing. Animals with fewer than two dated weighings, or whose first and
    last weighing are not at least a moment apart, are left out.
    Returns a tuple of (animal_id, adg) pairs.
    """
    history = defaultdict(list)
    for record in weighings:
        if record.date is None:
            logger.debug("Weighing %s of animal %s has no valid date; excluded from ADG",
                         record.id, record.animal_id)
            continue
        history[record.animal_id].append(record)

    results = []
    seen = set()
    for animal in animals:
        tag = animal.animal_id
        if not tag or tag in seen:
            continue
        seen.add(tag)

        records = history.get(tag)
        if not records or len(records) < 2:
            continue

        # sorted() is stable, so same-day records keep their input order.
        records = sorted(records, key=lambda w: w.date)
        first_entry, last_entry = records[0], records[-1]
        days = days_between(first_entry.date, last_entry.date)
        if days <= 0:
            continue

        results.append((tag, ((last_entry.weight or 0.0) - (first_entry.weight or 0.0)) / days))

    return tuple(results)


def composite_score(margin_percent, average_daily_gain, stocking_rate, cost_per_arroba, config=None):
    """
    Weighted 0-100 heuristic blending margin, growth, land use and cost.
    Rounds half up before clamping.
    """
    config = config or MetricsConfig()
    raw = (
        config.margin_weight * margin_percent
        + config.adg_weight * average_daily_gain
        + config.stocking_weight * stocking_rate
        - (config.cost_penalty if cost_per_arroba > config.cost_target else 0)
    )
    if math.isnan(raw):
        return 0
    if math.isinf(raw):
        return 100 if raw > 0 else 0
    return int(min(100, max(0, math.floor(raw + 0.5))))


def compute_herd_metrics(animals, transactions, pastures, plans, weighings, now, config=None):
    """
    Computes every dashboard indicator from the five collection snapshots.

    `now` is the reference instant for overdue plans and the next vaccination
    (datetime, date or ISO string). Degenerate inputs (no income, no area, no
    animals, short weight series) yield zeros instead of errors.
    """
    config = config or MetricsConfig()
    now = parse_datetime(now)
    if now is None:
        raise ValueError("compute_herd_metrics() needs a valid 'now'")

    # --- Financial ---
    total_income = sum(t.amount or 0.0 for t in transactions
                       if t.type == TRANSACTION_INCOME and t.status == TRANSACTION_PAID)
    total_expense = sum(t.amount or 0.0 for t in transactions
                        if t.type == TRANSACTION_EXPENSE and t.status == TRANSACTION_PAID)
    net_profit = total_income - total_expense
    margin_percent = (net_profit / total_income * 100) if total_income > 0 else 0.0

    # --- Zootechnical ---
    total_area = sum(p.area or 0.0 for p in pastures)
    active = [a for a in animals if a.status == ANIMAL_ACTIVE]
    active_live_weight = sum(a.weight or 0.0 for a in active)
    animal_units = active_live_weight / config.animal_unit_kg
    stocking_rate = (animal_units / total_area) if total_area > 0 else 0.0

    per_animal_adg = calculate_animal_adg(animals, weighings)
    average_daily_gain = (
        sum(adg for _, adg in per_animal_adg) / len(per_animal_adg) if per_animal_adg else 0.0
    )

    total_animals = len(animals)
    dead = sum(1 for a in animals if a.status == ANIMAL_DEAD)
    mortality_rate = (dead / total_animals * 100) if total_animals > 0 else 0.0

    # No slaughter data is recorded, so carcass yield is a fixed estimate.
    carcass_yield = config.carcass_yield_placeholder

    arrobas = active_live_weight / config.arroba_kg
    cost_per_arroba = (total_expense / arrobas) if arrobas > 0 else 0.0

    # --- Alerts and planning ---
    ready_for_sale = sum(1 for a in active if (a.weight or 0.0) >= config.sale_weight_kg)

    overdue_plans = 0
    next_vaccination = None
    for plan in plans:
        if plan.end_date is None:
            logger.debug("Plan %s has no valid end date; excluded from deadline checks", plan.id)
            continue
        if plan.status != PLAN_COMPLETED and plan.end_date < now:
            overdue_plans += 1
        if plan.type == PLAN_VACCINATION and plan.end_date > now:
            if next_vaccination is None or plan.end_date < next_vaccination.end_date:
                next_vaccination = plan

    score = composite_score(margin_percent, average_daily_gain, stocking_rate, cost_per_arroba, config)

    return HerdMetrics(
        total_income=total_income,
        total_expense=total_expense,
        net_profit=net_profit,
        margin_percent=margin_percent,
        total_area=total_area,
        active_live_weight=active_live_weight,
        animal_units=animal_units,
        stocking_rate=stocking_rate,
        average_daily_gain=average_daily_gain,
        per_animal_adg=per_animal_adg,
        total_animals=total_animals,
        mortality_rate=mortality_rate,
        carcass_yield=carcass_yield,
        cost_per_arroba=cost_per_arroba,
        ready_for_sale=ready_for_sale,
        overdue_plans=overdue_plans,
        next_vaccination=next_vaccination,
        score=score,
    )


def build_alerts(metrics, config=None):
    """The four dashboard alerts. Inactive alerts are returned too."""
    config = config or MetricsConfig()
    vaccination = metrics.next_vaccination

    return (
        Alert(
            code='ready_for_sale',
            active=metrics.ready_for_sale > 0,
            severity='high' if metrics.ready_for_sale > 0 else 'ok',
            message=f"{metrics.ready_for_sale} animal(s) reached the sale weight ({config.sale_weight_kg:g} kg)",
        ),
        Alert(
            code='overstocking',
            active=metrics.stocking_rate > config.overstock_threshold,
            severity='high' if metrics.stocking_rate > config.overstock_threshold else 'warning',
            message=f"Current stocking rate: {metrics.stocking_rate:.2f} UA/ha",
        ),
        Alert(
            code='vaccination_due',
            active=vaccination is not None,
            severity='info' if vaccination is not None else 'ok',
            message=(f"Next vaccination due on {vaccination.end_date:%d/%m}" if vaccination is not None
                     else "No vaccination scheduled"),
        ),
        Alert(
            code='overdue_activities',
            active=metrics.overdue_plans > 0,
            severity='high' if metrics.overdue_plans > 0 else 'ok',
            message=f"{metrics.overdue_plans} plan(s) past their end date",
        ),
    )
