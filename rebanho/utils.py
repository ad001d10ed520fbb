from datetime import datetime, date, timezone
import logging
import math
import threading
import time

logger = logging.getLogger(__name__)

def to_float(value, default=0.0):
    """
    Converts a loosely-typed numeric field to a float.
    Missing, malformed and non-finite values fall back to `default`.
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return number

def to_text(value):
    """Returns a stripped string, or None for missing/blank values."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None

def normalize_choice(value):
    """Lower-cases an enumerated field (status, type) so comparisons are stable."""
    text = to_text(value)
    return text.lower() if text else ''

def parse_datetime(value):
    """
    Parses the date formats found in the collections into a naive UTC datetime.

    Accepts datetime/date objects, ISO-8601 strings (with or without time and
    a trailing 'Z'), Mongo extended JSON ({"$date": ...}) and epoch milliseconds.
    Returns None when the value is missing or cannot be parsed.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    if isinstance(value, dict) and '$date' in value:
        return parse_datetime(value['$date'])

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            return parse_datetime(datetime.fromisoformat(text))
        except ValueError:
            pass
        try:
            return datetime.strptime(text[:10], '%Y-%m-%d')
        except ValueError:
            return None

    return None

def utcnow():
    """Current time as a naive UTC datetime, matching the stored columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

def days_between(start, end):
    """Fractional number of days from `start` to `end` (datetimes)."""
    return (end - start).total_seconds() / 86400

def camel_case(name):
    """'animal_id' -> 'animalId', the spelling used by the web client."""
    head, *rest = name.split('_')
    return head + ''.join(part.capitalize() for part in rest)

def coerce_field(kind, value):
    """
    Converts an incoming JSON value to the Python type of a column.
    Raises ValueError when the value is present but malformed.
    """
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None

    if kind == 'text':
        return to_text(value)
    if kind == 'choice':
        return normalize_choice(value)
    if kind in ('float', 'int'):
        number = to_float(value, default=None)
        if number is None:
            raise ValueError(f"'{value}' is not a valid number")
        return int(number) if kind == 'int' else number
    if kind == 'datetime':
        parsed = parse_datetime(value)
        if parsed is None:
            raise ValueError(f"'{value}' is not a valid date")
        return parsed
    if kind == 'bool':
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in ('true', '1', 'yes'):
            return True
        if text in ('false', '0', 'no'):
            return False
        raise ValueError(f"'{value}' is not a valid boolean")
    if kind == 'list':
        if isinstance(value, str):
            value = value.split(',')
        if not isinstance(value, (list, tuple)):
            raise ValueError(f"'{value}' is not a valid list")
        return [str(item).strip() for item in value if str(item).strip()]

    raise ValueError(f"Unknown field kind '{kind}'")

# --- Identifier generation ---

# Last timestamp handed out, so ids stay unique within a millisecond.
_last_stamp = 0
_stamp_lock = threading.Lock()

def _next_stamp():
    global _last_stamp
    with _stamp_lock:
        _last_stamp = max(int(time.time() * 1000), _last_stamp + 1)
        return _last_stamp

def generate_record_id(collection_name):
    """Storage key for a new record, e.g. 'animals_1718000000000'."""
    return f"{collection_name}_{_next_stamp()}"

def generate_animal_tag():
    """External ear-tag identifier for a new animal, e.g. 'A000123'."""
    return f"A{str(_next_stamp())[-6:]}"

# --- Collection summaries ---

def calculate_weight_history_with_gmd(weighings):
    """
    Takes the weighing snapshots of one animal and returns its weight history,
    enriched with GMD (gain per day) calculations for each entry.
    Records without a usable date are left out of the series.
    """
    dated = [w for w in weighings if w.date is not None]
    skipped = len(weighings) - len(dated)
    if skipped:
        logger.debug("Skipped %d weighing(s) with an invalid date", skipped)

    sorted_events = sorted(dated, key=lambda w: w.date)
    if not sorted_events:
        return []

    # The first event is our baseline.
    first_event = sorted_events[0]
    enriched_history = []

    for i, current_event in enumerate(sorted_events):
        # --- GMD Accumulated (since the first weighing) ---
        days_since_start = days_between(first_event.date, current_event.date)
        gain_since_start = current_event.weight - first_event.weight
        gmd_accumulated = (gain_since_start / days_since_start) if days_since_start > 0 else 0

        # --- GMD Between Weighings (period GMD) ---
        gmd_period = 0
        if i > 0:
            previous_event = sorted_events[i - 1]
            days_between_events = days_between(previous_event.date, current_event.date)
            gain_between = current_event.weight - previous_event.weight
            gmd_period = (gain_between / days_between_events) if days_between_events > 0 else 0

        enriched_history.append({
            'id': current_event.id,
            'date': current_event.date.date().isoformat(),
            'weight_kg': round(current_event.weight, 2),
            'gmd_accumulated_kg': round(gmd_accumulated, 3),
            'gmd_period_kg': round(gmd_period, 3)
        })

    return enriched_history

def summarize_transactions(transactions):
    """Realized (paid) and pending totals per transaction type."""
    totals = {
        'realized_income': 0.0,
        'realized_expense': 0.0,
        'pending_income': 0.0,
        'pending_expense': 0.0,
    }
    for t in transactions:
        if t.status == 'paid':
            prefix = 'realized'
        elif t.status == 'pending':
            prefix = 'pending'
        else:
            continue
        if t.type in ('income', 'expense'):
            totals[f'{prefix}_{t.type}'] += t.amount or 0.0

    totals['balance'] = totals['realized_income'] - totals['realized_expense']
    return totals

PASTURE_STATUSES = ('available', 'occupied', 'resting', 'maintenance')

def summarize_pastures(pastures):
    """Area, capacity and occupancy totals, plus a count per pasture status."""
    by_status = {status: 0 for status in PASTURE_STATUSES}
    for p in pastures:
        if p.status in by_status:
            by_status[p.status] += 1

    return {
        'total_area': sum(p.area or 0.0 for p in pastures),
        'total_capacity': sum(p.capacity or 0.0 for p in pastures),
        'total_animals': sum(p.current_animals or 0.0 for p in pastures),
        'pastures_by_status': by_status,
    }

def summarize_plans(plans, now):
    """Counts of in-progress, completed and overdue planning items."""
    now = parse_datetime(now)
    if now is None:
        raise ValueError("summarize_plans() needs a valid 'now'")
    overdue = 0
    for plan in plans:
        if plan.status != 'completed' and plan.end_date is not None and plan.end_date < now:
            overdue += 1

    return {
        'total_plans': len(plans),
        'in_progress': sum(1 for plan in plans if plan.status == 'in_progress'),
        'completed': sum(1 for plan in plans if plan.status == 'completed'),
        'overdue': overdue,
    }
