"""Host resource schemas."""
from typing import List
from pydantic import BaseModel, Field


class CPUInfo(BaseModel):
    cores: int = 0
    usage_percent: float = 0.0


class MemoryInfo(BaseModel):
    total: int = 0  # bytes
    used: int = 0
    available: int = 0
    used_percent: float = 0.0


class DiskInfo(BaseModel):
    device: str = ""
    mountpoint: str
    total: int = 0  # bytes
    used: int = 0
    free: int = 0
    used_percent: float = 0.0


class SystemInfo(BaseModel):
    """Snapshot of the local host."""
    hostname: str = ""
    platform: str = ""
    os: str = ""
    uptime: int = 0  # seconds
    cpu: CPUInfo = Field(default_factory=CPUInfo)
    memory: MemoryInfo = Field(default_factory=MemoryInfo)
    disks: List[DiskInfo] = Field(default_factory=list)
