"""Configuration loader for a scan."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator


class ConfigError(ValueError):
    """Invalid or missing configuration; fatal before any query runs."""


class ScanConfig(BaseModel):
    domain: Optional[str] = Field(default=None)
    domains_file: Optional[str] = Field(default=None)
    nameservers: str = Field(default="cloud", min_length=1)
    workers: int = Field(default=10, ge=1)
    timeout_seconds: float = Field(default=5.0, gt=0)
    port: int = Field(default=53, ge=1, le=65535)
    quiet: bool = Field(default=False)
    verbose: bool = Field(default=False)
    output: Optional[str] = Field(default=None)

    @model_validator(mode="after")
    def _require_target(self) -> "ScanConfig":
        if not self.domains_file and not (self.domain and self.domain.strip()):
            raise ValueError("You must provide either a domain (-d) or a list of domains (-l)")
        return self

    @classmethod
    def build(cls, **values: Any) -> "ScanConfig":
        """Validate `values`, turning pydantic errors into ConfigError."""
        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigError(_describe(exc)) from exc

    @staticmethod
    def read_yaml(path: str) -> Dict[str, Any]:
        cfg_path = Path(path)
        if not cfg_path.exists():
            raise FileNotFoundError(f"Config not found: {cfg_path}")
        try:
            raw = yaml.safe_load(cfg_path.read_text()) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid config {cfg_path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"Invalid config {cfg_path}: expected a mapping")
        return raw

    @classmethod
    def load(cls, path: str) -> "ScanConfig":
        return cls.build(**cls.read_yaml(path))

    @classmethod
    def from_sources(cls, path: Optional[str], overrides: Dict[str, Any]) -> "ScanConfig":
        """YAML file values (if any) overlaid with explicitly given overrides.

        Overrides whose value is None are treated as not given.
        """
        values: Dict[str, Any] = cls.read_yaml(path) if path else {}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.build(**values)


def _describe(exc: ValidationError) -> str:
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()))
        msg = error.get("msg", "invalid value")
        if field == "workers":
            messages.append(f"Invalid number of workers: {error.get('input')}. It must be a positive integer.")
        elif field:
            messages.append(f"{field}: {msg}")
        else:
            messages.append(msg.removeprefix("Value error, "))
    return "; ".join(messages)
