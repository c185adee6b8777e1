"""
Block Model

A single unit of work inside a Mage AI pipeline, as returned by the API.
"""

from typing import FrozenSet
from typing import List
from typing import Optional

from pydantic import Field

from mageai_sync.models.common import BlockConfiguration
from mageai_sync.models.common import RetryConfig
from mageai_sync.models.common import WireModel
from mageai_sync.models.enums import BlockStatus
from mageai_sync.models.enums import BlockType


class Block(WireModel):
    """Block record decoded from ``{"block": {...}}``.

    An empty ``uuid`` means the server did not return a block at all.
    """

    uuid: str = ""
    name: str = ""
    type: Optional[BlockType] = None
    language: str = ""
    content: str = ""
    color: str = ""
    extension_uuid: str = ""
    executor_type: str = ""
    configuration: BlockConfiguration = Field(default_factory=BlockConfiguration)
    retry_config: RetryConfig = Field(default_factory=RetryConfig)
    upstream_blocks: FrozenSet[str] = frozenset()
    downstream_blocks: FrozenSet[str] = frozenset()
    pipelines: List[str] = Field(default_factory=list)
    priority: int = 0
    timeout: int = 0
    has_callback: bool = False

    # Read-only, server-assigned
    status: Optional[BlockStatus] = None
    all_upstream_blocks_executed: bool = False
