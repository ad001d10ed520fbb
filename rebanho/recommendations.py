"""
Management recommendations derived from the herd metrics and a set of
regional benchmarks.
"""
from dataclasses import dataclass
import math


@dataclass(frozen=True)
class RegionalBenchmark:
    stocking_rate: float = 1.2      # UA/ha
    average_daily_gain: float = 0.75  # kg/day
    cost_per_arroba: float = 220.0
    margin_percent: float = 25.0


@dataclass(frozen=True)
class Recommendation:
    id: str
    title: str
    description: str
    category: str
    priority: str     # 'high', 'medium' or 'low'
    impact: str
    effort: str
    roi: str

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'category': self.category,
            'priority': self.priority,
            'impact': self.impact,
            'effort': self.effort,
            'roi': self.roi,
        }


def _finite(value):
    return value if isinstance(value, (int, float)) and math.isfinite(value) else 0.0


def generate_recommendations(metrics, benchmark=None):
    """
    Applies the recommendation rules to a HerdMetrics result.
    Non-finite indicators are treated as zero.
    """
    benchmark = benchmark or RegionalBenchmark()
    recs = []

    stocking_rate = _finite(metrics.stocking_rate)
    adg = _finite(metrics.average_daily_gain)
    cost_per_arroba = _finite(metrics.cost_per_arroba)
    margin = _finite(metrics.margin_percent)
    total_area = _finite(metrics.total_area)
    revenue_per_hectare = (_finite(metrics.total_income) / total_area) if total_area > 0 else 0.0

    # Nutrition
    if 0 < adg < benchmark.average_daily_gain * 0.8:
        recs.append(Recommendation(
            id='GMD001',
            title='Improve the nutrition program',
            description=(f"Herd ADG ({adg:.2f} kg/day) is below the {benchmark.average_daily_gain} kg/day target. "
                         "Strategic supplementation should raise weight gain."),
            category='Nutrition', priority='high',
            impact='20-30% increase in ADG', effort='medium', roi='25%',
        ))

    # Cost per arroba
    if cost_per_arroba > 0 and cost_per_arroba > benchmark.cost_per_arroba * 1.1:
        recs.append(Recommendation(
            id='CUST001',
            title='Review production cost',
            description=(f"Cost per arroba ({cost_per_arroba:.0f}) is above the regional benchmark. "
                         "Look for excessive expense sources."),
            category='Costs', priority='high',
            impact=f"Reduction of {cost_per_arroba - benchmark.cost_per_arroba:.0f} per arroba",
            effort='high', roi='30%',
        ))

    # Margin
    if margin != 0 and margin < benchmark.margin_percent - 5:
        recs.append(Recommendation(
            id='MRGM001',
            title='Improve sale margin',
            description=(f"Margin ({margin:.1f}%) is below the {benchmark.margin_percent}% target. "
                         "Review sale opportunities or the cost structure."),
            category='Financial', priority='medium',
            impact=f"Raise margin by at least {benchmark.margin_percent - margin:.1f}%",
            effort='low', roi='15%',
        ))

    if margin == 0:
        recs.append(Recommendation(
            id='MRGM002',
            title='Review financial entries',
            description="Margin is zero. Financial transactions may be missing from the system.",
            category='Financial', priority='high',
            impact='Accurate financial records', effort='high', roi='15%',
        ))

    # Stocking rate
    if 0 < stocking_rate < benchmark.stocking_rate * 0.5:
        recs.append(Recommendation(
            id='LTC001',
            title='Increase stocking rate',
            description=(f"Stocking rate ({stocking_rate:.2f} UA/ha) leaves pasture underused. "
                         "Consider growing the herd."),
            category='Productivity', priority='medium',
            impact='Higher revenue per hectare', effort='medium', roi='20%',
        ))

    if stocking_rate > benchmark.stocking_rate * 1.3:
        recs.append(Recommendation(
            id='LTC002',
            title='Adjust stocking rate',
            description=(f"Stocking rate ({stocking_rate:.2f} UA/ha) is above the ideal and may hurt "
                         "animal welfare and productivity."),
            category='Productivity', priority='medium',
            impact='Better animal welfare and ADG', effort='low', roi='10%',
        ))

    # Revenue per hectare
    if 0 < revenue_per_hectare < 2000:
        recs.append(Recommendation(
            id='RPH001',
            title='Increase revenue per hectare',
            description=(f"Revenue per hectare ({revenue_per_hectare:.0f}) is below potential. "
                         "Consider intensification strategies."),
            category='Productivity', priority='medium',
            impact='30-50% more revenue per area', effort='high', roi='35%',
        ))

    return recs
