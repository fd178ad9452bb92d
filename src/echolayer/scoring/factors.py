"""Echo Index factor calculators. Pure functions, no state or I/O.

Every factor is normalized to [0, 100] and clamped at both ends. Degenerate
inputs (no propagations, zero reach, zero engagement) yield the documented
default instead of dividing by zero.
"""

import math
from collections import defaultdict
from collections.abc import Sequence
from datetime import datetime

from echolayer.contracts.models import QUALITY_INDICATOR_KEYS, ContentRecord, PropagationSignal
from echolayer.scoring.thresholds import SCORE_MAX, SCORE_MIN

# Originality / discovery
MAX_PLATFORMS_FOR_DIVERSITY = 4
MAX_DISCOVERY_VELOCITY = 10.0

# Audience / attention
ENGAGEMENT_RATE_SCALE = 1000.0
CROSS_PLATFORM_MAX_BONUS = 20.0
REACH_LOG_THRESHOLD = 10_000

# Temporal persistence
VELOCITY_POINTS_PER_EVENT_HOUR = 10.0
VELOCITY_CAP = 50.0
SUSTAINABILITY_MAX = 30.0
BUCKET_HOURS = 24
RECENT_WINDOW_HOURS = 6.0
RECENT_EVENTS_FOR_FULL_BONUS = 5.0
RECENT_ACTIVITY_MAX = 20.0

# Quality
DEFAULT_QUALITY_INDICATOR = 0.5
_LENGTH_BUCKETS: tuple[tuple[int, float], ...] = (
    (10, 10.0),
    (50, 25.0),
    (200, 40.0),
    (500, 35.0),
)
_LENGTH_OVERFLOW_SCORE = 20.0


def clamp_score(value: float) -> float:
    """Clamp to the normalized factor range."""
    return max(SCORE_MIN, min(SCORE_MAX, value))


def hours_between(earlier: datetime, later: datetime) -> float:
    return (later - earlier).total_seconds() / 3600.0


def compute_originality(
    content: ContentRecord,
    propagations: Sequence[PropagationSignal],
    now: datetime,
) -> float:
    """Organic discovery factor.

    organic share x40 + target-platform diversity (max 4 platforms) x30
    + organic propagations per hour since creation (capped at 10/h) x30.
    Zero when nothing has propagated yet.
    """
    if not propagations:
        return 0.0

    organic = sum(1 for p in propagations if p.is_organic)
    organic_ratio = organic / len(propagations)

    platforms = {p.target_platform for p in propagations}
    platform_diversity = min(len(platforms) / MAX_PLATFORMS_FOR_DIVERSITY, 1.0)

    age_hours = hours_between(content.created_at, now)
    if age_hours > 0:
        discovery_velocity = min(organic / age_hours, MAX_DISCOVERY_VELOCITY) / MAX_DISCOVERY_VELOCITY
    else:
        discovery_velocity = 0.0

    return clamp_score(organic_ratio * 40.0 + platform_diversity * 30.0 + discovery_velocity * 30.0)


def _reach_scale(total_reach: int) -> float:
    # Linear up to the threshold, logarithmic beyond it
    if total_reach > REACH_LOG_THRESHOLD:
        return 80.0 + math.log10(total_reach) * 5.0
    return (total_reach / REACH_LOG_THRESHOLD) * 80.0


def compute_audience(propagations: Sequence[PropagationSignal]) -> float:
    """Attention-weighted reach.

    engagement-rate term x0.6 + cross-platform bonus (up to 20) + reach scale x0.4.
    The cross-platform bonus compares reach on every platform except the
    dominant one against the dominant platform's reach.
    """
    total_reach = sum(p.reach for p in propagations)
    if total_reach == 0:
        return 0.0

    total_engagement = sum(p.engagement for p in propagations)
    engagement_score = min((total_engagement / total_reach) * ENGAGEMENT_RATE_SCALE, SCORE_MAX)

    platform_reach: dict[str, int] = defaultdict(int)
    for p in propagations:
        platform_reach[p.target_platform] += p.reach

    cross_platform_bonus = 0.0
    if len(platform_reach) > 1:
        dominant = max(platform_reach.values())
        if dominant > 0:
            cross_reach = total_reach - dominant
            cross_platform_bonus = min(cross_reach / dominant, 1.0) * CROSS_PLATFORM_MAX_BONUS

    return clamp_score(engagement_score * 0.6 + cross_platform_bonus + _reach_scale(total_reach) * 0.4)


def _sustainability(content: ContentRecord, propagations: Sequence[PropagationSignal]) -> float:
    """Compare volume after the peak hour with volume up to and including it."""
    buckets = [0] * BUCKET_HOURS
    for p in propagations:
        hour = math.floor(hours_between(content.created_at, p.created_at))
        if 0 <= hour < BUCKET_HOURS:
            buckets[hour] += 1

    peak_count = max(buckets)
    if peak_count == 0:
        return 0.0

    peak_hour = buckets.index(peak_count)
    up_to_peak = sum(buckets[: peak_hour + 1])
    after_peak = sum(buckets[peak_hour + 1 :])
    return min(after_peak / up_to_peak, 1.0) * SUSTAINABILITY_MAX


def compute_temporal(
    content: ContentRecord,
    propagations: Sequence[PropagationSignal],
    now: datetime,
) -> float:
    """Temporal persistence of propagation.

    velocity (events per elapsed hour, x10, capped at 50) + sustainability
    (up to 30) + recent-activity bonus (events in the last 6h, up to 20).
    Zero with no propagations; content that propagated before any time
    elapsed scores the maximum.
    """
    if not propagations:
        return 0.0

    age_hours = hours_between(content.created_at, now)
    if age_hours <= 0:
        return SCORE_MAX

    velocity_score = min(len(propagations) / age_hours * VELOCITY_POINTS_PER_EVENT_HOUR, VELOCITY_CAP)

    recent = sum(
        1 for p in propagations if 0 <= hours_between(p.created_at, now) < RECENT_WINDOW_HOURS
    )
    recent_activity_score = min(recent / RECENT_EVENTS_FOR_FULL_BONUS, 1.0) * RECENT_ACTIVITY_MAX

    return clamp_score(velocity_score + _sustainability(content, propagations) + recent_activity_score)


def _length_score(word_count: int) -> float:
    if word_count == 0:
        return 0.0
    for upper, score in _LENGTH_BUCKETS:
        if word_count <= upper:
            return score
    return _LENGTH_OVERFLOW_SCORE


def compute_quality(content: ContentRecord) -> float:
    """Content quality.

    length bucket (medium length scores best) + comment share of engagement x30
    + mean of originality/readability/informativeness indicators x30.
    Missing indicators count as 0.5; an empty body contributes no length score.
    """
    length_score = _length_score(len(content.body.split()))

    interactions = content.likes + content.comments + content.shares
    engagement_quality = (content.comments / interactions) * 30.0 if interactions > 0 else 0.0

    indicators = [
        content.quality_indicators.get(key, DEFAULT_QUALITY_INDICATOR) for key in QUALITY_INDICATOR_KEYS
    ]
    content_quality = sum(indicators) / len(indicators) * 30.0

    return clamp_score(length_score + engagement_quality + content_quality)


def apply_temporal_decay(score: float, hours_elapsed: float, decay_factor: float) -> float:
    """Decay a score by decay_factor per elapsed day."""
    if hours_elapsed <= 0:
        return score
    return score * decay_factor ** (hours_elapsed / 24.0)
