"""
Mage AI Enums

Closed sets of literals accepted by the Mage AI pipelines API.
Values must match the server's strings exactly (case-sensitive).
"""

from enum import Enum


class PipelineType(str, Enum):
    """Pipeline flavour; decides which executor the server uses."""

    INTEGRATION = "integration"
    PYSPARK = "pyspark"
    PYTHON = "python"
    STREAMING = "streaming"

    @classmethod
    def is_valid(cls, value: str) -> bool:
        return value in cls._value2member_map_


class BlockType(str, Enum):
    """Kind of unit of work a block performs inside a pipeline."""

    CALLBACK = "callback"
    CHART = "chart"
    CONDITIONAL = "conditional"
    CUSTOM = "custom"
    DATA_EXPORTER = "data_exporter"
    DATA_LOADER = "data_loader"
    DBT = "dbt"
    EXTENSION = "extension"
    GLOBAL_DATA_PRODUCT = "global_data_product"
    MARKDOWN = "markdown"
    SCRATCHPAD = "scratchpad"
    SENSOR = "sensor"
    TRANSFORMER = "transformer"

    @classmethod
    def is_valid(cls, value: str) -> bool:
        return value in cls._value2member_map_


class BlockStatus(str, Enum):
    """Execution status of a block (server-assigned, read-only)."""

    EXECUTED = "executed"
    FAILED = "failed"
    NOT_EXECUTED = "not_executed"
    UPDATED = "updated"
