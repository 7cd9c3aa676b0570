"""
Application-Level Prometheus Metrics

Custom metrics for business logic monitoring:
- Strategy lifecycle operations (create, update, publish, ...)
- Simulated trade bookings
- Activity log health

Author: Quant Desk Development Team
Version: 1.0.0
"""

from prometheus_client import Histogram, Counter


# ============================================================================
# Strategy Lifecycle Metrics
# ============================================================================

STRATEGY_OPERATIONS = Counter(
    'strategy_operations_total',
    'Total number of strategy operations',
    ['operation', 'status']  # status: success, not_found, forbidden, conflict, invalid, failed
)

STRATEGY_OPERATION_DURATION = Histogram(
    'strategy_operation_duration_seconds',
    'Strategy operation duration in seconds',
    ['operation'],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0)
)

STRATEGY_VISIBILITY_TRANSITIONS = Counter(
    'strategy_visibility_transitions_total',
    'Strategy publish/unpublish transitions',
    ['transition']  # publish, unpublish
)


# ============================================================================
# Trading Metrics
# ============================================================================

TRADE_BOOKINGS = Counter(
    'trade_bookings_total',
    'Total number of simulated trades booked',
    ['trade_type']
)

PORTFOLIO_POSITION_COUNT = Histogram(
    'portfolio_position_count',
    'Number of positions per computed portfolio summary',
    buckets=(0, 1, 2, 5, 10, 25, 50, 100, 250)
)


# ============================================================================
# Activity Log Metrics
# ============================================================================

ACTIVITY_LOG_WRITES = Counter(
    'activity_log_writes_total',
    'Activity log write attempts',
    ['event_type', 'status']  # status: success, failed
)


def record_visibility_transition(transition: str):
    """
    Record a publish/unpublish transition.

    Args:
        transition: 'publish' or 'unpublish'
    """
    STRATEGY_VISIBILITY_TRANSITIONS.labels(transition=transition).inc()
