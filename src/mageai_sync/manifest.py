"""
Manifest Parser

Reads the operator's declared pipelines and blocks from YAML. Blocks reference their
upstream siblings by manifest key; keys are resolved to server UUIDs by the driver
once the upstream block exists.
"""

from pathlib import Path
from typing import Dict
from typing import List
from typing import Optional
from typing import Set
from typing import Union

import pydantic
import yaml
from loguru import logger
from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator
from pydantic import model_validator

from mageai_sync.errors import ValidationError
from mageai_sync.models import BlockConfiguration
from mageai_sync.models import BlockRequest
from mageai_sync.models import PipelineRequest
from mageai_sync.models import RetryConfig


class BlockSpec(BaseModel):
    """Desired state of one block."""

    model_config = ConfigDict(extra="forbid")

    key: str
    name: Optional[str] = None  # defaults to key
    type: str
    language: str = ""
    content: str = ""
    content_file: Optional[Path] = None  # relative to the manifest file
    color: str = ""
    extension_uuid: str = ""
    priority: int = 0
    configuration: BlockConfiguration = Field(default_factory=BlockConfiguration)
    retry_config: RetryConfig = Field(default_factory=RetryConfig)
    upstream: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def default_name(self) -> "BlockSpec":
        if not self.name:
            self.name = self.key
        if self.content and self.content_file:
            raise ValueError(f"block '{self.key}': set either content or content_file, not both")
        return self

    def declared_fields(self) -> Set[str]:
        """Request fields the operator set explicitly; name, type and upstream always count."""
        declared = {"name", "type", "upstream_blocks"}
        declared.update(self.model_fields_set & set(BlockRequest.model_fields))
        if self.content_file is not None:
            declared.add("content")
        return declared

    def to_request(self, upstream_uuids: List[str], current: Optional[BlockRequest] = None) -> BlockRequest:
        """
        Build the write request for this block.

        Fields the operator left unset keep the value from ``current`` (the request
        derived from the last known server record) so an update never wipes them.
        """
        values = {
            "name": self.name,
            "type": self.type,
            "color": self.color,
            "configuration": self.configuration,
            "content": self.content,
            "extension_uuid": self.extension_uuid,
            "language": self.language,
            "priority": self.priority,
            "retry_config": self.retry_config,
            "upstream_blocks": frozenset(upstream_uuids),
        }
        if current is not None:
            declared = self.declared_fields()
            for field in values:
                if field not in declared:
                    values[field] = getattr(current, field)
        return BlockRequest(**values)


class PipelineSpec(BaseModel):
    """Desired state of one pipeline and its blocks."""

    model_config = ConfigDict(extra="forbid")

    key: str
    name: Optional[str] = None  # defaults to key
    type: str = "python"
    blocks: List[BlockSpec] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_blocks(self) -> "PipelineSpec":
        if not self.name:
            self.name = self.key
        keys = [block.key for block in self.blocks]
        duplicates = sorted({key for key in keys if keys.count(key) > 1})
        if duplicates:
            raise ValueError(f"pipeline '{self.key}': duplicate block keys {duplicates}")
        for block in self.blocks:
            unknown = sorted(set(block.upstream) - set(keys))
            if unknown:
                raise ValueError(f"pipeline '{self.key}': block '{block.key}' has unknown upstream {unknown}")
        self.creation_order()  # rejects cycles
        return self

    def to_request(self) -> PipelineRequest:
        return PipelineRequest(name=self.name, type=self.type)

    def block(self, key: str) -> BlockSpec:
        for block in self.blocks:
            if block.key == key:
                return block
        raise KeyError(key)

    def creation_order(self) -> List[str]:
        """Block keys ordered so every block comes after its upstream blocks."""
        remaining: Dict[str, set] = {block.key: set(block.upstream) for block in self.blocks}
        order = []
        while remaining:
            ready = [key for key, parents in remaining.items() if not parents]
            if not ready:
                raise ValueError(f"pipeline '{self.key}': dependency cycle between blocks {sorted(remaining)}")
            for key in ready:
                order.append(key)
                del remaining[key]
            for parents in remaining.values():
                parents.difference_update(ready)
        return order


class Manifest(BaseModel):
    """Top-level manifest: the full set of pipelines to manage."""

    model_config = ConfigDict(extra="forbid")

    pipelines: List[PipelineSpec] = Field(default_factory=list)

    @field_validator("pipelines")
    @classmethod
    def unique_keys(cls, v: List[PipelineSpec]) -> List[PipelineSpec]:
        keys = [pipeline.key for pipeline in v]
        duplicates = sorted({key for key in keys if keys.count(key) > 1})
        if duplicates:
            raise ValueError(f"duplicate pipeline keys {duplicates}")
        return v

    def pipeline(self, key: str) -> PipelineSpec:
        for pipeline in self.pipelines:
            if pipeline.key == key:
                return pipeline
        raise KeyError(key)


def parse_manifest(file_content: Union[str, bytes, Path]) -> Manifest:
    """
    Parse YAML manifest content into a Manifest.

    Args:
        file_content: YAML content as string, bytes, or Path to file. ``content_file``
            entries are read relative to the file's directory (or the working
            directory for in-memory content).

    Returns:
        Manifest instance

    Raises:
        ValidationError: If the YAML is invalid or does not match the manifest schema
    """
    base_dir = Path.cwd()
    if isinstance(file_content, Path):
        base_dir = file_content.parent
        content = file_content.read_text(encoding="utf-8")
    elif isinstance(file_content, bytes):
        content = file_content.decode("utf-8")
    else:
        content = file_content

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        logger.error(f"YAML parsing error: {e}")
        raise ValidationError(f"Invalid YAML syntax: {e}") from e

    if data is None:
        raise ValidationError("Empty manifest")

    try:
        manifest = Manifest.model_validate(data)
    except pydantic.ValidationError as e:
        logger.error("Manifest validation error", errors=e.errors(include_url=False))
        raise ValidationError(f"Invalid manifest: {e}") from e

    for pipeline in manifest.pipelines:
        for block in pipeline.blocks:
            if block.content_file is not None:
                path = block.content_file if block.content_file.is_absolute() else base_dir / block.content_file
                try:
                    block.content = path.read_text(encoding="utf-8")
                except OSError as e:
                    raise ValidationError(f"block '{block.key}': cannot read content_file {path}: {e}") from e

    logger.debug(
        "Successfully parsed manifest",
        pipelines=len(manifest.pipelines),
        blocks=sum(len(p.blocks) for p in manifest.pipelines),
    )
    return manifest
