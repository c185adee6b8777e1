"""Dependency graph over the blocks of one pipeline.

Each block knows the identifiers of its upstream and downstream siblings. The graph is
built wholesale from decoded blocks (a straight set conversion, duplicates collapse)
and is only ever replaced, never edited edge by edge. Acyclicity is left to the
server.
"""

from typing import Dict
from typing import FrozenSet
from typing import Iterable
from typing import List
from typing import Mapping
from typing import Optional
from typing import Tuple

from mageai_sync.errors import ValidationError
from mageai_sync.models import Block
from mageai_sync.models import BlockStatus
from mageai_sync.models import Pipeline
from mageai_sync.models import RetryConfig

UPSTREAM = "upstream"
DOWNSTREAM = "downstream"


class BlockGraph:
    """Upstream/downstream identifier sets and retry policy per block."""

    def __init__(
        self,
        upstream: Mapping[str, Iterable[str]],
        downstream: Mapping[str, Iterable[str]],
        retry_configs: Optional[Mapping[str, RetryConfig]] = None,
        pipeline_uuid: Optional[str] = None,
    ):
        self.pipeline_uuid = pipeline_uuid
        self._upstream: Dict[str, FrozenSet[str]] = {k: frozenset(v) for k, v in upstream.items()}
        self._downstream: Dict[str, FrozenSet[str]] = {k: frozenset(v) for k, v in downstream.items()}
        for block_id in self._upstream.keys() - self._downstream.keys():
            self._downstream[block_id] = frozenset()
        for block_id in self._downstream.keys() - self._upstream.keys():
            self._upstream[block_id] = frozenset()
        self._retry_configs = dict(retry_configs or {})

    @classmethod
    def from_blocks(cls, blocks: Iterable[Block], pipeline_uuid: Optional[str] = None) -> "BlockGraph":
        upstream = {}
        downstream = {}
        retry_configs = {}
        for block in blocks:
            upstream[block.uuid] = block.upstream_blocks
            downstream[block.uuid] = block.downstream_blocks
            retry_configs[block.uuid] = block.retry_config
        return cls(upstream, downstream, retry_configs, pipeline_uuid=pipeline_uuid)

    @classmethod
    def from_pipeline(cls, pipeline: Pipeline) -> "BlockGraph":
        return cls.from_blocks(pipeline.blocks, pipeline_uuid=pipeline.uuid)

    @property
    def block_ids(self) -> FrozenSet[str]:
        return frozenset(self._upstream)

    def __contains__(self, block_id: object) -> bool:
        return block_id in self._upstream

    def __len__(self) -> int:
        return len(self._upstream)

    def upstream_of(self, block_id: str) -> FrozenSet[str]:
        """Blocks this block depends on. Raises KeyError for an unknown block."""
        return self._upstream[block_id]

    def downstream_of(self, block_id: str) -> FrozenSet[str]:
        """Blocks that depend on this block. Raises KeyError for an unknown block."""
        return self._downstream[block_id]

    def retry_config_of(self, block_id: str) -> RetryConfig:
        if block_id not in self:
            raise KeyError(block_id)
        return self._retry_configs.get(block_id, RetryConfig())

    def upstream_executed(self, block_id: str, statuses: Mapping[str, Optional[BlockStatus]]) -> bool:
        """True only when every upstream block has status ``executed``."""
        return all(statuses.get(parent) == BlockStatus.EXECUTED for parent in self.upstream_of(block_id))

    def dangling_references(self) -> List[Tuple[str, str, str]]:
        """Edges naming a block outside this pipeline, as (block_id, direction, missing_id)."""
        dangling = []
        for direction, edges in ((UPSTREAM, self._upstream), (DOWNSTREAM, self._downstream)):
            for block_id in sorted(edges):
                for other in sorted(edges[block_id].difference(self._upstream)):
                    dangling.append((block_id, direction, other))
        return dangling

    def validate(self) -> None:
        """Raise ValidationError if any edge references a non-sibling block."""
        dangling = self.dangling_references()
        if dangling:
            details = "; ".join(f"{block_id} {direction} -> {other}" for block_id, direction, other in dangling)
            raise ValidationError(
                f"block graph references blocks outside the pipeline: {details}",
                operation="validate",
                resource_kind="block graph",
                identifiers={"pipeline_uuid": self.pipeline_uuid} if self.pipeline_uuid else None,
            )
