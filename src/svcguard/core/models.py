from enum import Enum
from typing import List, Literal
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServiceStatus(str, Enum):
    """Normalized status of a host service."""

    RUNNING = "running"
    STOPPED = "stopped"
    OTHER = "other"


class ServiceSnapshot(BaseModel):
    """
    Point-in-time read of one service from the host. Rebuilt every cycle.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    status: ServiceStatus

    @property
    def is_running(self) -> bool:
        return self.status == ServiceStatus.RUNNING


class GuardianSettings(BaseSettings):
    """
    Loop-level settings (the 'guardian' section in svcguard.yaml).
    """
    model_config = SettingsConfigDict(env_prefix='SVCGUARD_', extra='ignore')

    poll_interval_seconds: float = Field(default=5.0, gt=0)
    stop_timeout_seconds: float = Field(default=10.0, gt=0)
    seed_history_on_start: bool = False
    adopt_stopped_on_start: bool = False


class StoreSettings(BaseModel):
    """
    Keep-stopped list settings (the 'store' section in svcguard.yaml).
    """
    model_config = ConfigDict(extra='ignore')

    path: str = "services.txt"
    default_services: List[str] = Field(default_factory=list)


class HostSettings(BaseModel):
    """
    Service manager backend settings (the 'host' section in svcguard.yaml).
    """
    model_config = ConfigDict(extra='ignore')

    backend: Literal["auto", "windows", "systemd"] = "auto"
    status_poll_seconds: float = Field(default=0.25, gt=0)
    command_timeout_seconds: float = Field(default=30.0, gt=0)
