from pathlib import Path
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field
from svcguard.core.models import GuardianSettings, HostSettings, StoreSettings


class GuardianContext(BaseModel):
    """
    Resolved runtime configuration shared by the controller and the CLI.
    """
    model_config = ConfigDict(extra="ignore")

    # Loop Settings (Maps to 'guardian' section)
    guardian: GuardianSettings = Field(default_factory=GuardianSettings)

    # Keep-Stopped List Settings (Maps to 'store' section)
    store: StoreSettings = Field(default_factory=StoreSettings)

    # Service Manager Settings (Maps to 'host' section)
    host: HostSettings = Field(default_factory=HostSettings)

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None, **data: Any):
        """
        Initialize the context, optionally with a configuration dictionary.
        """
        if config_dict:
            # Seed fields from config_dict if not explicitly provided in data
            if 'guardian' not in data:
                data['guardian'] = GuardianSettings(**(config_dict.get('guardian') or {}))
            if 'store' not in data:
                data['store'] = StoreSettings(**(config_dict.get('store') or {}))
            if 'host' not in data:
                data['host'] = HostSettings(**(config_dict.get('host') or {}))

        super().__init__(**data)

    def store_path(self, base_dir: Optional[Path] = None) -> Path:
        """Resolve the keep-stopped list path, relative paths against `base_dir`."""
        path = Path(self.store.path).expanduser()
        if not path.is_absolute() and base_dir is not None:
            path = base_dir / path
        return path
