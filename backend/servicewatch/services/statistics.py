"""Uptime statistics computed from an endpoint's check log."""
from datetime import datetime, timedelta
from typing import Optional

from ..schemas.endpoint import ServiceStatus
from ..schemas.history import HistoryLog, ServiceStatistics
from ..utils.time_utils import utcnow


def compute_statistics(history: HistoryLog, now: Optional[datetime] = None) -> ServiceStatistics:
    """Derive uptime statistics from *history*.

    - Uptime percentage is up checks over all checks.
    - Average response time only counts up checks.
    - Total uptime/downtime attributes each gap between two consecutive
      records to the status of the earlier record.
    - Current uptime/downtime runs from the first record of the streak
      that ends at the last record until *now*.
    """
    now = now or utcnow()
    checks = history.checks
    stats = ServiceStatistics(service_id=history.service_id, total_checks=len(checks))
    if not checks:
        return stats

    up_count = 0
    down_count = 0
    total_response_time = 0
    total_uptime = timedelta()
    total_downtime = timedelta()

    for i, check in enumerate(checks):
        if check.status == ServiceStatus.UP:
            up_count += 1
            total_response_time += check.response_time
        elif check.status == ServiceStatus.DOWN:
            down_count += 1

        if i > 0:
            prev = checks[i - 1]
            gap = check.timestamp - prev.timestamp
            if prev.status == ServiceStatus.UP:
                total_uptime += gap
            elif prev.status == ServiceStatus.DOWN:
                total_downtime += gap

    last = checks[-1]
    streak_start = last.timestamp
    for check in reversed(checks):
        if check.status != last.status:
            break
        streak_start = check.timestamp

    current = max(now - streak_start, timedelta())
    if last.status == ServiceStatus.UP:
        stats.current_uptime = int(current.total_seconds())
    elif last.status == ServiceStatus.DOWN:
        stats.current_downtime = int(current.total_seconds())

    stats.up_count = up_count
    stats.down_count = down_count
    if up_count:
        stats.uptime_percentage = up_count / len(checks) * 100
        stats.average_response_time = total_response_time // up_count

    stats.total_uptime = int(total_uptime.total_seconds())
    stats.total_downtime = int(total_downtime.total_seconds())

    one_day_ago = now - timedelta(hours=24)
    stats.last_24_hours = [c.model_copy() for c in checks if c.timestamp > one_day_ago]
    return stats
