"""
ocap-ld SDK Configuration.

Provides sensible defaults with override capability.
"""

from pydantic import BaseModel, ConfigDict
from pathlib import Path
from typing import Any, Optional, Union
import json
import logging
import os

import yaml


_YAML_SUFFIXES = (".yaml", ".yml")


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class OcapConfig(BaseModel):
    """
    Configuration for capability verification.

    Environment variables override defaults (OCAP_* prefix).
    """

    # Identity
    name: str = "ocapld-verifier"

    # Verification
    max_chain_length: int = 0  # 0 = unlimited
    verification_timeout: float = 0.0  # seconds, 0 = none
    builtin_caveats: bool = True

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    model_config = ConfigDict(validate_assignment=True)

    def model_post_init(self, __context):
        """Apply environment variable overrides."""
        self._apply_env_overrides()

    def _apply_env_overrides(self):
        """Override config from environment variables."""
        env_map = {
            "OCAP_NAME": ("name", str),
            "OCAP_MAX_CHAIN_LENGTH": ("max_chain_length", int),
            "OCAP_VERIFICATION_TIMEOUT": ("verification_timeout", float),
            "OCAP_BUILTIN_CAVEATS": ("builtin_caveats", _parse_bool),
            "OCAP_LOG_LEVEL": ("log_level", str),
            "OCAP_LOG_FILE": ("log_file", str),
        }

        for env_var, (attr, type_fn) in env_map.items():
            value = os.environ.get(env_var)
            if value is not None:
                setattr(self, attr, type_fn(value))

    @property
    def chain_limit(self) -> Optional[int]:
        """Maximum chain length, or None when unlimited."""
        return self.max_chain_length or None

    @property
    def timeout(self) -> Optional[float]:
        """Verification timeout in seconds, or None when disabled."""
        return self.verification_timeout or None

    def to_dict(self) -> dict[str, Any]:
        """Export config to dictionary."""
        return {
            "name": self.name,
            "max_chain_length": self.max_chain_length,
            "verification_timeout": self.verification_timeout,
            "builtin_caveats": self.builtin_caveats,
            "log_level": self.log_level,
            "log_file": self.log_file,
        }

    def save(self, path: Union[str, Path]):
        """Save config to a JSON or YAML file (chosen by suffix)."""
        path = Path(path)
        with open(path, "w") as f:
            if path.suffix in _YAML_SUFFIXES:
                yaml.safe_dump(self.to_dict(), f, sort_keys=False)
            else:
                json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "OcapConfig":
        """Load config from a JSON or YAML file."""
        path = Path(path)
        with open(path) as f:
            if path.suffix in _YAML_SUFFIXES:
                data = yaml.safe_load(f) or {}
            else:
                data = json.load(f)

        return cls(
            name=data.get("name", "ocapld-verifier"),
            max_chain_length=data.get("max_chain_length", 0),
            verification_timeout=data.get("verification_timeout", 0.0),
            builtin_caveats=data.get("builtin_caveats", True),
            log_level=data.get("log_level", "INFO"),
            log_file=data.get("log_file"),
        )

    @classmethod
    def development(cls) -> "OcapConfig":
        """Create development config with relaxed settings."""
        return cls(
            name="dev-verifier",
            log_level="DEBUG",
        )

    @classmethod
    def production(cls) -> "OcapConfig":
        """Create production config with strict settings."""
        return cls(
            name="prod-verifier",
            max_chain_length=10,
            verification_timeout=5.0,
            log_level="WARNING",
        )

    def configure_logging(self):
        """Apply log level and optional log file to the root logger."""
        handlers: list[logging.Handler] = [logging.StreamHandler()]
        if self.log_file:
            handlers.append(logging.FileHandler(self.log_file))
        logging.basicConfig(
            level=getattr(logging, self.log_level.upper(), logging.INFO),
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
            handlers=handlers,
            force=True,
        )
