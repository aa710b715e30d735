"""Configuration models for fluxmux."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from fluxmux.common import LoggingConfig


class MiddlewareConfig(BaseModel):
    """Bridge-mode middleware options.

    Every option is optional; an absent option keeps the corresponding stage
    out of the chain entirely.
    """

    model_config = ConfigDict(extra='forbid')

    batch_size: Optional[int] = Field(
        default=None, ge=1,
        description="Combine this many messages into one JSON array message"
    )
    batch_timeout_ms: Optional[int] = Field(
        default=None, ge=0,
        description="Flush a partial batch when this much time passed (checked on arrival, default 5000)"
    )
    deduplicate: Optional[bool] = Field(
        default=None,
        description="Drop messages whose key has been seen before"
    )
    throttle_per_sec: Optional[int] = Field(
        default=None, ge=1,
        description="Maximum forwarded messages per second"
    )
    retry_max_attempts: Optional[int] = Field(
        default=None, ge=0,
        description="Retries after a failed delivery (total attempts = 1 + this)"
    )
    retry_delay_ms: Optional[int] = Field(
        default=None, ge=0,
        description="Fixed delay between delivery attempts (default 1000)"
    )
    schema_path: Optional[str] = Field(
        default=None,
        description="JSON schema document whose 'required' list gates messages"
    )


class EngineConfig(BaseModel):
    """Orchestrator and endpoint tuning."""

    model_config = ConfigDict(extra='forbid')

    channel_capacity: int = Field(
        default=1024, ge=1,
        description="Bounded channel size between source and orchestrator (backpressure limit)"
    )
    file_sink_buffer_size: int = Field(
        default=100, ge=1,
        description="Messages buffered by the file sink before writing"
    )
    kafka_group_id: str = Field(
        default="fluxmux-default",
        description="Consumer group used when a kafka source URI has no ?group="
    )


class ApiConfig(BaseModel):
    """HTTP front end settings."""

    model_config = ConfigDict(extra='forbid')

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=3001, ge=1, le=65535)
    enable_cors: bool = Field(default=True)
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])


class FluxmuxConfig(BaseModel):
    """Root configuration for fluxmux."""

    model_config = ConfigDict(extra='forbid')

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    middleware: MiddlewareConfig = Field(default_factory=MiddlewareConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
