"""
Pipeline Model

A named, typed collection of blocks executed as a unit by Mage AI.
"""

from typing import FrozenSet
from typing import List

from pydantic import Field

from mageai_sync.models.block import Block
from mageai_sync.models.common import RetryConfig
from mageai_sync.models.common import WireModel
from mageai_sync.models.enums import PipelineType


class Pipeline(WireModel):
    """Pipeline record decoded from ``{"pipeline": {...}}``."""

    uuid: str = ""
    name: str = ""
    type: PipelineType = PipelineType.PYTHON
    description: str = ""
    tags: FrozenSet[str] = frozenset()
    retry_config: RetryConfig = Field(default_factory=RetryConfig)
    blocks: List[Block] = Field(default_factory=list)

    # Bookkeeping, server-assigned
    created_at: str = ""
    updated_at: str = ""
    executor_count: int = 0
    cache_block_output_in_memory: bool = False
    run_pipeline_in_one_process: bool = False
    variables_dir: str = ""

    def block(self, block_uuid: str) -> Block:
        """Return the block with the given UUID or raise KeyError."""
        for block in self.blocks:
            if block.uuid == block_uuid:
                return block
        raise KeyError(block_uuid)
