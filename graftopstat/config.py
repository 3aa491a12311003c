"""Configuration models using Pydantic for validation."""
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
import os


class SourceConfig(BaseModel):
    """A single external command source."""
    enabled: bool = True
    command: List[str]

    @model_validator(mode='after')
    def validate_command(self):
        """Enabled sources need something to run."""
        if self.enabled and not self.command:
            raise ValueError("Enabled source must define a non-empty command")
        return self


def _default_top() -> SourceConfig:
    return SourceConfig(command=["top", "-b", "-n", "1", "-w", "512"])


def _default_netstat() -> SourceConfig:
    return SourceConfig(command=["netstat", "-s"])


class CollectorConfig(BaseModel):
    """Collection loop settings."""
    interval_s: float = 5.0
    top: SourceConfig = Field(default_factory=_default_top)
    netstat: SourceConfig = Field(default_factory=_default_netstat)

    @field_validator('interval_s')
    @classmethod
    def validate_interval(cls, v):
        if v <= 0:
            raise ValueError("interval_s must be positive")
        return v


class ServerConfig(BaseModel):
    """Exposition HTTP server configuration."""
    bind_address: str = "0.0.0.0"
    port: int = Field(default=8787, ge=1, le=65535)
    metrics_path: str = "/metrics"
    placeholder: str = "running ..."

    @field_validator('metrics_path')
    @classmethod
    def validate_metrics_path(cls, v):
        if not v.startswith("/"):
            raise ValueError("metrics_path must start with '/'")
        return v


class SelfMetricsConfig(BaseModel):
    """Self-monitoring listener configuration."""
    enabled: bool = False
    bind_address: str = "0.0.0.0"
    port: int = Field(default=8788, ge=1, le=65535)


class GlobalConfig(BaseModel):
    """Global configuration settings."""
    log_level: str = "INFO"


class Config(BaseModel):
    """Root configuration model."""
    model_config = ConfigDict(populate_by_name=True)

    global_: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    collector: CollectorConfig = Field(default_factory=CollectorConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    self_metrics: SelfMetricsConfig = Field(default_factory=SelfMetricsConfig)

    @model_validator(mode='after')
    def validate_ports(self):
        """Ensure the two listeners do not collide."""
        if self.self_metrics.enabled and self.self_metrics.port == self.server.port:
            raise ValueError(
                f"self_metrics.port must differ from server.port ({self.server.port})"
            )
        return self


def _section(raw_config: dict, name: str) -> dict:
    """Return a top-level section for overriding, creating it when empty."""
    section = raw_config.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Configuration validation failed: '{name}' must be a mapping")
    raw_config[name] = section
    return section


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate configuration from an optional YAML file."""
    import yaml

    raw_config = {}
    if config_path is not None:
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r') as f:
            raw_config = yaml.safe_load(f) or {}

        if not isinstance(raw_config, dict):
            raise ValueError(f"Configuration file must contain a mapping: {config_path}")

    # Apply environment variable overrides
    if env_log_level := os.getenv('LOG_LEVEL'):
        _section(raw_config, 'global')['log_level'] = env_log_level

    if env_port := os.getenv('GRAFTOPSTAT_PORT'):
        _section(raw_config, 'server')['port'] = env_port

    if env_interval := os.getenv('GRAFTOPSTAT_INTERVAL_S'):
        _section(raw_config, 'collector')['interval_s'] = env_interval

    try:
        config = Config(**raw_config)
        return config
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")
