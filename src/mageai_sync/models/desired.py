"""
Write Requests

Desired-state records sent to the Mage AI API on create/update. They only carry the
fields the server accepts as input; server-assigned fields (uuid, status,
all_upstream_blocks_executed, timestamps) are never part of a request.

``type`` is kept as a plain string here so an unknown literal reaches the reconciler
and is rejected there before any request goes out.
"""

from typing import FrozenSet

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from mageai_sync.models.common import BlockConfiguration
from mageai_sync.models.common import RetryConfig


class PipelineRequest(BaseModel):
    """Mutable pipeline fields: only name and type are accepted by the API."""

    model_config = ConfigDict(extra="forbid")

    name: str
    type: str = "python"


class BlockRequest(BaseModel):
    """Every block field the API accepts on create and update."""

    model_config = ConfigDict(extra="forbid")

    name: str
    type: str
    color: str = ""
    configuration: BlockConfiguration = Field(default_factory=BlockConfiguration)
    content: str = ""
    extension_uuid: str = ""
    language: str = ""
    priority: int = 0
    retry_config: RetryConfig = Field(default_factory=RetryConfig)
    upstream_blocks: FrozenSet[str] = frozenset()
