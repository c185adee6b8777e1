"""
Models Module

Pydantic models for Mage AI resources:
- Closed enumerations of wire literals
- Value objects shared by pipelines and blocks
- Resource records decoded from the API
- Write requests built from desired state
"""

from mageai_sync.models.block import Block
from mageai_sync.models.common import BlockConfiguration
from mageai_sync.models.common import RetryConfig
from mageai_sync.models.enums import BlockStatus
from mageai_sync.models.enums import BlockType
from mageai_sync.models.enums import PipelineType
from mageai_sync.models.pipeline import Pipeline
from mageai_sync.models.desired import BlockRequest
from mageai_sync.models.desired import PipelineRequest

__all__ = [
    # Enums
    "PipelineType",
    "BlockType",
    "BlockStatus",
    # Value objects
    "RetryConfig",
    "BlockConfiguration",
    # Records
    "Pipeline",
    "Block",
    # Requests
    "PipelineRequest",
    "BlockRequest",
]
