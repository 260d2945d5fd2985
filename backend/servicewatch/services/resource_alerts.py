"""Debounced alerts for host CPU, memory and disk usage."""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..schemas.settings import SystemAlertConfig
from ..schemas.system import SystemInfo

logger = logging.getLogger(__name__)

# Only these mounts raise disk alerts; others are sampled but ignored
ALERTABLE_MOUNTS = ("/", "/home")


@dataclass
class AlertDebounceState:
    """Which conditions have already been alerted. Disk flags are per mount."""
    cpu_alert_sent: bool = False
    memory_alert_sent: bool = False
    disk_alert_sent: Dict[str, bool] = field(default_factory=dict)


@dataclass
class SystemAlert:
    """A threshold breach that produced a notification."""
    type: str  # disk, cpu, memory
    current_value: float
    threshold: float
    device: str = ""


class ResourceAlertMonitor:
    """Fires once when usage rises above a threshold, re-arms at or below it."""

    def __init__(self, notifier, config: Optional[SystemAlertConfig] = None):
        self.notifier = notifier
        self.config = config or SystemAlertConfig()
        self.state = AlertDebounceState()

    def evaluate(self, info: SystemInfo) -> List[SystemAlert]:
        """Compare a host snapshot against the thresholds and notify on new breaches."""
        fired: List[SystemAlert] = []
        config = self.config

        for disk in info.disks:
            if disk.mountpoint not in ALERTABLE_MOUNTS:
                continue
            sent = self.state.disk_alert_sent.get(disk.mountpoint, False)
            fire, sent = self._edge(sent, disk.used_percent, config.disk_space_threshold)
            self.state.disk_alert_sent[disk.mountpoint] = sent
            if fire:
                fired.append(SystemAlert("disk", disk.used_percent, config.disk_space_threshold, disk.mountpoint))

        fire, self.state.cpu_alert_sent = self._edge(
            self.state.cpu_alert_sent, info.cpu.usage_percent, config.cpu_threshold
        )
        if fire:
            fired.append(SystemAlert("cpu", info.cpu.usage_percent, config.cpu_threshold))

        fire, self.state.memory_alert_sent = self._edge(
            self.state.memory_alert_sent, info.memory.used_percent, config.memory_threshold
        )
        if fire:
            fired.append(SystemAlert("memory", info.memory.used_percent, config.memory_threshold))

        for alert in fired:
            logger.warning(
                f"{alert.type} usage {alert.current_value:.1f}% above threshold {alert.threshold:.1f}%"
                + (f" on {alert.device}" if alert.device else "")
            )
            self.notifier.notify_system_alert(alert.type, alert.device, alert.current_value, alert.threshold)
        return fired

    @staticmethod
    def _edge(sent: bool, value: float, threshold: float):
        """Return (fire, new_sent) for one metric."""
        if value > threshold:
            return (not sent), True
        return False, False
