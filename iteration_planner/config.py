"""
Configuration for the Iteration Planner

Project scheduling settings and the YAML/environment loader for the host.
"""

import os
from dataclasses import dataclass
from datetime import date
from typing import Optional, Union

import yaml


DEFAULT_VELOCITY = 10
DEFAULT_VELOCITY_LOOKBACK = 3


def parse_start_date(value: Union[str, date, None]) -> Optional[date]:
    """Parse a "YYYY/MM/DD" project start date."""
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value

    parts = str(value).split("/")
    if len(parts) != 3:
        raise ValueError(f"start_date must be YYYY/MM/DD, got {value!r}")

    year, month, day = (int(p) for p in parts)
    return date(year, month, day)


@dataclass(frozen=True)
class ProjectConfig:
    """Settings that stay fixed for the duration of a rebuild."""
    start_date: Optional[date] = None
    iteration_start_day: int = 1  # 0 = Sunday ... 6 = Saturday
    iteration_length: int = 1  # weeks
    default_velocity: int = DEFAULT_VELOCITY
    velocity_lookback: int = DEFAULT_VELOCITY_LOOKBACK

    def __post_init__(self):
        # Frozen, so normalise through object.__setattr__
        object.__setattr__(self, "start_date", parse_start_date(self.start_date))

        if self.default_velocity is None:
            object.__setattr__(self, "default_velocity", DEFAULT_VELOCITY)

        if not 0 <= self.iteration_start_day <= 6:
            raise ValueError("iteration_start_day must be between 0 and 6.")
        if self.iteration_length < 1:
            raise ValueError("iteration_length must be at least 1 week.")
        if self.default_velocity < 1:
            raise ValueError("default_velocity must be greater than zero.")
        if self.velocity_lookback < 1:
            raise ValueError("velocity_lookback must be greater than zero.")

    @classmethod
    def from_dict(cls, data: dict) -> "ProjectConfig":
        """Build from project attributes, ignoring unknown keys."""
        return cls(
            start_date=data.get("start_date"),
            iteration_start_day=int(data.get("iteration_start_day", 1)),
            iteration_length=int(data.get("iteration_length", 1)),
            default_velocity=int(data.get("default_velocity") or DEFAULT_VELOCITY),
            velocity_lookback=int(data.get("velocity_lookback", DEFAULT_VELOCITY_LOOKBACK)),
        )

    def to_dict(self) -> dict:
        return {
            "start_date": self.start_date.strftime("%Y/%m/%d") if self.start_date else None,
            "iteration_start_day": self.iteration_start_day,
            "iteration_length": self.iteration_length,
            "default_velocity": self.default_velocity,
            "velocity_lookback": self.velocity_lookback,
        }


class Config:
    """Load configuration from config.yaml and environment."""

    def __init__(self, config_path: str = "config/config.yaml"):
        self.config = {}

        if os.path.exists(config_path):
            with open(config_path) as f:
                self.config = yaml.safe_load(f) or {}

        # Override with environment variables
        self._load_env()

    def _load_env(self):
        """Load configuration from environment variables."""
        env_mapping = {
            "PLANNER_URL": ("server", "url"),
            "PLANNER_TOKEN": ("server", "token"),
            "PLANNER_TIMEOUT": ("server", "timeout"),
            "PLANNER_LOG_LEVEL": ("logging", "level"),
            "PLANNER_DEFAULT_VELOCITY": ("project", "default_velocity"),
        }

        for env_var, (section, key) in env_mapping.items():
            value = os.getenv(env_var)
            if value:
                if section not in self.config:
                    self.config[section] = {}
                self.config[section][key] = value

    def get(self, section: str, key: str, default=None):
        """Get configuration value."""
        return (self.config.get(section) or {}).get(key, default)

    @property
    def server_url(self) -> Optional[str]:
        return self.get("server", "url")

    @property
    def server_token(self) -> Optional[str]:
        return self.get("server", "token")

    @property
    def server_timeout(self) -> float:
        return float(self.get("server", "timeout", 30.0))

    @property
    def log_level(self) -> str:
        return str(self.get("logging", "level", "INFO")).upper()

    def project_defaults(self) -> dict:
        """Project attributes applied underneath each project's own settings."""
        return dict(self.config.get("project") or {})
