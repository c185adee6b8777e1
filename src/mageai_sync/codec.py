"""Translate Mage AI resources between wire JSON and pydantic records.

Decoding never raises for a business failure. The API signals failure by returning a
body whose primary identifier is empty, so each ``decode_*`` function first tries the
success envelope and, when the identifier is empty, re-reads the same bytes as the
error envelope ``{"error": {"code", "exception", "message"}}``. The result is a
``Success`` or a ``Failure``; only bytes that match neither shape raise DecodeError.
"""

import json
from typing import Any
from typing import List
from typing import Optional
from typing import Union

import pydantic
from pydantic import BaseModel
from pydantic import Field

from mageai_sync.errors import DecodeError
from mageai_sync.models import Block
from mageai_sync.models import BlockRequest
from mageai_sync.models import Pipeline
from mageai_sync.models import PipelineRequest
from mageai_sync.models.common import WireModel


class ErrorDetail(WireModel):
    """Body of the error envelope."""

    code: int = 0
    exception: str = ""
    message: str = ""

    def is_empty(self) -> bool:
        return not (self.code or self.exception or self.message)


class ErrorEnvelope(WireModel):
    error: ErrorDetail = Field(default_factory=ErrorDetail)


class PipelineEnvelope(WireModel):
    pipeline: Pipeline = Field(default_factory=Pipeline)


class PipelinesEnvelope(WireModel):
    pipelines: Optional[List[Pipeline]] = None


class BlockEnvelope(WireModel):
    block: Block = Field(default_factory=Block)


class BlocksEnvelope(WireModel):
    blocks: Optional[List[Block]] = None


class Success(BaseModel):
    """Decoded resource (or list of resources)."""

    value: Any


class Failure(BaseModel):
    """Error envelope reported by the server in place of a resource."""

    error: ErrorDetail


Decoded = Union[Success, Failure]


# ════════════════════════════════════════════════════════════════════════════
# Encoding
# ════════════════════════════════════════════════════════════════════════════


def encode_pipeline(request: PipelineRequest) -> bytes:
    """Serialize a pipeline write request as ``{"pipeline": {"name", "type"}}``."""
    return _dumps({"pipeline": request.model_dump(mode="json")})


def encode_block(request: BlockRequest) -> bytes:
    """Serialize a block write request as ``{"block": {...}}``.

    ``upstream_blocks`` is emitted sorted so identical requests produce identical bytes.
    """
    payload = request.model_dump(mode="json")
    payload["upstream_blocks"] = sorted(request.upstream_blocks)
    return _dumps({"block": payload})


def request_from_pipeline(pipeline: Pipeline) -> PipelineRequest:
    """Build the write request that would reproduce the pipeline's mutable fields."""
    return PipelineRequest(name=pipeline.name, type=pipeline.type.value)


def request_from_block(block: Block) -> BlockRequest:
    """Build the write request that would reproduce the block's mutable fields."""
    return BlockRequest(
        name=block.name,
        type=block.type.value if block.type else "",
        color=block.color,
        configuration=block.configuration,
        content=block.content,
        extension_uuid=block.extension_uuid,
        language=block.language,
        priority=block.priority,
        retry_config=block.retry_config,
        upstream_blocks=block.upstream_blocks,
    )


def _dumps(payload: dict) -> bytes:
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


# ════════════════════════════════════════════════════════════════════════════
# Decoding
# ════════════════════════════════════════════════════════════════════════════


def decode_pipeline(raw: bytes) -> Decoded:
    """Decode ``{"pipeline": {...}}``; an empty uuid yields a Failure."""
    envelope = _parse(PipelineEnvelope, raw)
    if envelope.pipeline.uuid == "":
        return _failure(raw)
    return Success(value=envelope.pipeline)


def decode_pipelines(raw: bytes) -> Decoded:
    """Decode ``{"pipelines": [...]}``.

    A missing list is an empty collection unless the body carries an error envelope.
    """
    envelope = _parse(PipelinesEnvelope, raw)
    if envelope.pipelines is None:
        failure = _failure(raw)
        if not failure.error.is_empty():
            return failure
        return Success(value=[])
    return Success(value=envelope.pipelines)


def decode_block(raw: bytes) -> Decoded:
    """Decode ``{"block": {...}}``; an empty uuid yields a Failure."""
    envelope = _parse(BlockEnvelope, raw)
    if envelope.block.uuid == "":
        return _failure(raw)
    return Success(value=envelope.block)


def decode_blocks(raw: bytes) -> Decoded:
    """Decode ``{"blocks": [...]}``.

    A ``null`` or absent list is always a Failure, even though it could also mean the
    pipeline has no blocks: the server does not distinguish the two.
    """
    envelope = _parse(BlocksEnvelope, raw)
    if envelope.blocks is None:
        return _failure(raw)
    return Success(value=envelope.blocks)


def _failure(raw: bytes) -> Failure:
    return Failure(error=_parse(ErrorEnvelope, raw).error)


def _parse(model, raw: bytes):
    try:
        return model.model_validate_json(raw)
    except pydantic.ValidationError as exc:
        raise DecodeError(f"error unmarshalling JSON: {exc}", reason=str(exc)) from exc
