"""System service - samples the local host and drives resource alerts."""
import logging
import os
import platform
import socket
import time
from typing import Callable, Optional

import psutil

from ..schemas.settings import SystemAlertConfig
from ..schemas.system import CPUInfo, DiskInfo, MemoryInfo, SystemInfo
from .resource_alerts import ResourceAlertMonitor

logger = logging.getLogger(__name__)


class HostSampler:
    """Reads CPU, memory and disk usage with psutil."""

    def sample(self) -> SystemInfo:
        info = SystemInfo(
            hostname=socket.gethostname(),
            platform=platform.platform(),
            os=platform.system().lower(),
            uptime=max(0, int(time.time() - psutil.boot_time())),
        )

        info.cpu = CPUInfo(
            cores=os.cpu_count() or 0,
            # Usage since the previous call, non-blocking
            usage_percent=psutil.cpu_percent(interval=None),
        )

        memory = psutil.virtual_memory()
        info.memory = MemoryInfo(
            total=memory.total,
            used=memory.used,
            available=memory.available,
            used_percent=memory.percent,
        )

        for partition in psutil.disk_partitions(all=False):
            try:
                usage = psutil.disk_usage(partition.mountpoint)
            except OSError:
                continue
            info.disks.append(DiskInfo(
                device=partition.device,
                mountpoint=partition.mountpoint,
                total=usage.total,
                used=usage.used,
                free=usage.free,
                used_percent=usage.percent,
            ))

        return info


class SystemService:
    """Serves host snapshots and feeds them to the resource alert monitor."""

    def __init__(self, notifier, sampler: Optional[HostSampler] = None, config: Optional[SystemAlertConfig] = None):
        self.notifier = notifier
        self.sampler = sampler or HostSampler()
        self.alerts = ResourceAlertMonitor(notifier, config)
        self._on_save: Optional[Callable[[], None]] = None

    def set_on_save(self, on_save: Optional[Callable[[], None]]):
        self._on_save = on_save

    def load_alert_config(self, config: Optional[SystemAlertConfig]):
        """Install a persisted config without triggering a save."""
        if config is not None:
            self.alerts.config = config.model_copy()

    def get_alert_config(self) -> SystemAlertConfig:
        return self.alerts.config.model_copy()

    def set_alert_config(self, config: SystemAlertConfig):
        self.alerts.config = config.model_copy()
        if self._on_save is not None:
            self._on_save()

    def get_system_info(self) -> SystemInfo:
        """Sample the host, evaluating resource alerts when alerting is on."""
        info = self.sampler.sample()
        if self.alerts.config.enabled and self.notifier.is_enabled():
            self.alerts.evaluate(info)
        return info
