"""Endpoints that run bridges, pipes and conversions in-process."""

import base64
import binascii
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from fluxmux.actions import build_action
from fluxmux.codecs import CodecFormat, convert_bytes
from fluxmux.common import ConfigurationError, DecodeError, get_logger
from fluxmux.config import FluxmuxConfig, MiddlewareConfig
from fluxmux.engine import launch_bridge, launch_pipe

from .deps import get_config

router = APIRouter()
logger = get_logger(__name__)


class _Request(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='forbid')


class BridgeRequest(_Request):
    source: str = Field(min_length=1, description="Source URI")
    sink: str = Field(min_length=1, description="Sink URI")
    batch_size: Optional[int] = None
    batch_timeout_ms: Optional[int] = None
    deduplicate: Optional[bool] = None
    throttle_per_sec: Optional[int] = None
    retry_max_attempts: Optional[int] = None
    retry_delay_ms: Optional[int] = None
    schema_path: Optional[str] = None

    def middleware(self) -> MiddlewareConfig:
        try:
            return MiddlewareConfig(**self.model_dump(exclude={"source", "sink"}, exclude_none=True))
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid middleware options: {e}") from e


class ActionStep(_Request):
    type: str = Field(min_length=1, description="Action verb, e.g. filter or limit")
    param: Optional[str] = None


class PipeRequest(_Request):
    source: str = Field(min_length=1, description="Source URI")
    actions: List[ActionStep] = Field(default_factory=list)
    sinks: List[str] = Field(default_factory=list, description="Tee sinks; stdout when empty")


class ConvertRequest(_Request):
    data: str = Field(min_length=1, description="Input document; base64 for binary formats")
    from_format: str
    to_format: str


@router.post("/bridge")
async def run_bridge_endpoint(request: BridgeRequest, config: FluxmuxConfig = Depends(get_config)):
    """Run a bridge to completion and report its counters."""
    middleware = request.middleware()
    stats = await launch_bridge(request.source, request.sink, middleware, config.engine)
    return {"success": True, "stats": stats.to_dict()}


@router.post("/pipe")
async def run_pipe_endpoint(request: PipeRequest, config: FluxmuxConfig = Depends(get_config)):
    """Run a pipe to completion and report its counters."""
    actions = [build_action(step.type, step.param) for step in request.actions]
    sinks = [uri for uri in request.sinks if uri.strip()]
    stats = await launch_pipe(request.source, actions, sinks, config.engine)
    return {"success": True, "stats": stats.to_dict()}


@router.post("/convert")
async def convert_endpoint(request: ConvertRequest):
    """Convert a posted document and return the converted document.

    Binary formats (parquet, avro, msgpack, cbor) travel as base64 in both
    directions; ``encoding`` in the response says which applies.
    """
    from_fmt = CodecFormat.parse(request.from_format)
    to_fmt = CodecFormat.parse(request.to_format)

    if from_fmt.is_binary:
        try:
            data = base64.b64decode(request.data, validate=True)
        except binascii.Error as e:
            raise DecodeError(f"Invalid base64 data for {from_fmt.value}: {e}", format=from_fmt.value) from e
    else:
        data = request.data.encode("utf-8")

    output = convert_bytes(data, from_fmt, to_fmt)
    logger.debug(f"Converted via API: {{'from': {from_fmt.value!r}, 'to': {to_fmt.value!r}, 'bytes': {len(output)}}}")

    if to_fmt.is_binary:
        return {"success": True, "output": base64.b64encode(output).decode("ascii"), "encoding": "base64"}
    return {"success": True, "output": output.decode("utf-8"), "encoding": "utf-8"}
