"""
Reconciliation driver.

Converges the Mage AI server onto a Manifest, one resource at a time. Pipeline and block
type literals are checked first; plan and apply both reject an unknown one before any
call:

1. Refresh every pipeline and block recorded in state (read replaces the record).
2. Delete pipelines that left the manifest.
3. Per pipeline: create or update it, delete blocks that left the manifest
   (downstream first), then create or update blocks upstream first so upstream keys
   can be resolved to server UUIDs.
4. Re-read each changed pipeline so downstream edges filled in by the server land in
   state.

State is saved after every successful call. On the first failure the state reached so
far is saved and the error is re-raised; nothing is rolled back or retried.
"""

from typing import List
from typing import Optional
from typing import Tuple

from loguru import logger
from pydantic import BaseModel
from pydantic import Field

from mageai_sync.codec import request_from_block
from mageai_sync.codec import request_from_pipeline
from mageai_sync.errors import MageAISyncError
from mageai_sync.errors import ValidationError
from mageai_sync.graph import BlockGraph
from mageai_sync.manifest import BlockSpec
from mageai_sync.manifest import Manifest
from mageai_sync.manifest import PipelineSpec
from mageai_sync.models import Block
from mageai_sync.models import BlockType
from mageai_sync.models import PipelineType
from mageai_sync.reconciler import BlockReconciler
from mageai_sync.reconciler import PipelineReconciler
from mageai_sync.state import BlockState
from mageai_sync.state import PipelineState
from mageai_sync.state import State
from mageai_sync.state import StateStore

CREATE = "create"
UPDATE = "update"
DELETE = "delete"


class Change(BaseModel):
    """One planned call against the server."""

    operation: str
    resource_kind: str
    pipeline_key: str
    block_key: Optional[str] = None
    uuid: Optional[str] = None
    fields: List[str] = Field(default_factory=list)

    def describe(self) -> str:
        target = self.pipeline_key if self.block_key is None else f"{self.pipeline_key}/{self.block_key}"
        text = f"{self.operation} {self.resource_kind} {target}"
        if self.uuid:
            text += f" ({self.uuid})"
        if self.fields:
            text += f": {', '.join(self.fields)}"
        return text


class Plan(BaseModel):
    changes: List[Change] = Field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.changes)

    def describe(self) -> List[str]:
        return [change.describe() for change in self.changes]


def diff_fields(current: BaseModel, desired: BaseModel) -> List[str]:
    """Names of the fields whose values differ between two records of the same model."""
    return [name for name in type(desired).model_fields if getattr(current, name) != getattr(desired, name)]


def resolve_upstream(spec: BlockSpec, pipeline_state: Optional[PipelineState]) -> Tuple[List[str], List[str]]:
    """Map upstream manifest keys to block UUIDs; returns (uuids, unresolved keys)."""
    uuids = []
    unresolved = []
    for key in spec.upstream:
        block_state = pipeline_state.blocks.get(key) if pipeline_state else None
        if block_state is None:
            unresolved.append(key)
        else:
            uuids.append(block_state.uuid)
    return uuids, unresolved


def deletion_order(pipeline_state: PipelineState, keys: List[str]) -> List[str]:
    """Order block keys so each block is deleted before the blocks it depends on."""
    graph = BlockGraph.from_blocks(block_state.record for block_state in pipeline_state.blocks.values())
    remaining = {pipeline_state.blocks[key].uuid: key for key in sorted(keys)}
    order = []
    while remaining:
        leaves = [
            uuid
            for uuid in remaining
            if uuid not in graph or not graph.downstream_of(uuid).intersection(remaining)
        ]
        if not leaves:
            # Edges in state no longer describe a DAG; fall back to key order
            leaves = list(remaining)
        for uuid in leaves:
            order.append(remaining.pop(uuid))
    return order


def check_types(manifest: Manifest) -> None:
    """Raise ValidationError listing every pipeline or block type the server would reject."""
    invalid = []
    for spec in manifest.pipelines:
        if not PipelineType.is_valid(spec.type):
            invalid.append(f"pipeline {spec.key}: {spec.type!r}")
        for block in spec.blocks:
            if not BlockType.is_valid(block.type):
                invalid.append(f"block {spec.key}/{block.key}: {block.type!r}")
    if invalid:
        raise ValidationError(
            f"invalid type literal(s): {'; '.join(invalid)}",
            operation="validate",
            resource_kind="manifest",
        )


class Driver:
    """
    Apply a Manifest through the pipeline and block reconcilers.

    Parameters
    ----------
    pipelines : PipelineReconciler
    blocks : BlockReconciler
    store : StateStore
        State sink; receives the state after every successful call
    """

    def __init__(self, pipelines: PipelineReconciler, blocks: BlockReconciler, store: StateStore):
        self.pipelines = pipelines
        self.blocks = blocks
        self.store = store

    @classmethod
    def from_transport(cls, transport, store: StateStore) -> "Driver":
        return cls(PipelineReconciler(transport), BlockReconciler(transport), store)

    # ════════════════════════════════════════════════════════════════════════
    # Refresh
    # ════════════════════════════════════════════════════════════════════════

    def refresh(self, state: State) -> State:
        """Replace every stored record with the server's current one."""
        for key, pipeline_state in state.pipelines.items():
            pipeline_state.record = self.pipelines.read(pipeline_state.uuid)
            if pipeline_state.blocks:
                self._replace_block_records(key, pipeline_state, self.blocks.list(pipeline_state.uuid))
        return state

    def _replace_block_records(self, key: str, pipeline_state: PipelineState, blocks: List[Block]) -> None:
        by_uuid = {block.uuid: block for block in blocks}
        for block_key in list(pipeline_state.blocks):
            block_state = pipeline_state.blocks[block_key]
            record = by_uuid.get(block_state.uuid)
            if record is None:
                logger.warning(
                    "Block no longer exists on the server, dropping it from state",
                    pipeline_key=key,
                    block_key=block_key,
                    block_uuid=block_state.uuid,
                )
                del pipeline_state.blocks[block_key]
            else:
                block_state.record = record

    # ════════════════════════════════════════════════════════════════════════
    # Plan
    # ════════════════════════════════════════════════════════════════════════

    def plan(self, manifest: Manifest, state: State) -> Plan:
        """Compute the calls apply would make, without touching the server."""
        check_types(manifest)
        plan = Plan()
        declared = {spec.key for spec in manifest.pipelines}
        for key in sorted(set(state.pipelines) - declared):
            plan.changes.append(
                Change(operation=DELETE, resource_kind="pipeline", pipeline_key=key, uuid=state.pipelines[key].uuid)
            )

        for spec in manifest.pipelines:
            current = state.pipelines.get(spec.key)
            if current is None:
                plan.changes.append(Change(operation=CREATE, resource_kind="pipeline", pipeline_key=spec.key))
            else:
                fields = diff_fields(request_from_pipeline(current.record), spec.to_request())
                if fields:
                    plan.changes.append(
                        Change(
                            operation=UPDATE,
                            resource_kind="pipeline",
                            pipeline_key=spec.key,
                            uuid=current.uuid,
                            fields=fields,
                        )
                    )
            plan.changes.extend(self._plan_blocks(spec, current))
        return plan

    def _plan_blocks(self, spec: PipelineSpec, current: Optional[PipelineState]) -> List[Change]:
        changes = []
        declared = {block.key for block in spec.blocks}
        if current is not None:
            removed = [key for key in current.blocks if key not in declared]
            for key in deletion_order(current, removed):
                changes.append(
                    Change(
                        operation=DELETE,
                        resource_kind="block",
                        pipeline_key=spec.key,
                        block_key=key,
                        uuid=current.blocks[key].uuid,
                    )
                )

        for key in spec.creation_order():
            block_spec = spec.block(key)
            existing = current.blocks.get(key) if current else None
            if existing is None:
                changes.append(Change(operation=CREATE, resource_kind="block", pipeline_key=spec.key, block_key=key))
                continue
            upstream, unresolved = resolve_upstream(block_spec, current)
            current_request = request_from_block(existing.record)
            fields = diff_fields(current_request, block_spec.to_request(upstream, current_request))
            if unresolved and "upstream_blocks" not in fields:
                fields.append("upstream_blocks")
            if fields:
                changes.append(
                    Change(
                        operation=UPDATE,
                        resource_kind="block",
                        pipeline_key=spec.key,
                        block_key=key,
                        uuid=existing.uuid,
                        fields=fields,
                    )
                )
        return changes

    # ════════════════════════════════════════════════════════════════════════
    # Apply
    # ════════════════════════════════════════════════════════════════════════

    def apply(self, manifest: Manifest) -> State:
        """Converge the server onto ``manifest`` and return the persisted state."""
        check_types(manifest)
        state = self.store.load()
        try:
            self.refresh(state)
            self.store.save(state)

            declared = {spec.key for spec in manifest.pipelines}
            for key in sorted(set(state.pipelines) - declared):
                self.pipelines.delete(state.pipelines[key].uuid)
                del state.pipelines[key]
                self.store.save(state)

            for spec in manifest.pipelines:
                self._apply_pipeline(spec, state)
        except MageAISyncError as e:
            logger.error("Apply aborted, state saved up to the failure", error=str(e), error_type=type(e).__name__)
            self.store.save(state)
            raise

        logger.info("Apply complete", pipelines=len(state.pipelines))
        return state

    def _apply_pipeline(self, spec: PipelineSpec, state: State) -> None:
        desired = spec.to_request()
        current = state.pipelines.get(spec.key)
        changed = False

        if current is None:
            record = self.pipelines.create(desired)
            current = PipelineState(uuid=record.uuid, record=record)
            state.pipelines[spec.key] = current
            self.store.save(state)
            changed = True
        elif diff_fields(request_from_pipeline(current.record), desired):
            current.record = self.pipelines.update(current.uuid, desired)
            self.store.save(state)
            changed = True

        declared = {block.key for block in spec.blocks}
        removed = [key for key in current.blocks if key not in declared]
        for key in deletion_order(current, removed):
            self.blocks.delete(current.uuid, current.blocks[key].uuid)
            del current.blocks[key]
            self.store.save(state)
            changed = True

        for key in spec.creation_order():
            changed = self._apply_block(spec.key, spec.block(key), current, state) or changed

        if changed:
            current.record = self.pipelines.read(current.uuid)
            if current.blocks:
                self._replace_block_records(spec.key, current, self.blocks.list(current.uuid))
            self.store.save(state)

    def _apply_block(self, pipeline_key: str, spec: BlockSpec, current: PipelineState, state: State) -> bool:
        upstream, unresolved = resolve_upstream(spec, current)
        if unresolved:
            raise ValidationError(
                f"upstream blocks {unresolved} of '{spec.key}' have not been created",
                operation="apply",
                resource_kind="block",
                identifiers={"pipeline_key": pipeline_key, "block_key": spec.key},
            )

        existing = current.blocks.get(spec.key)
        if existing is None:
            record = self.blocks.create(current.uuid, spec.to_request(upstream))
            current.blocks[spec.key] = BlockState(uuid=record.uuid, record=record)
            self.store.save(state)
            return True

        current_request = request_from_block(existing.record)
        desired = spec.to_request(upstream, current_request)
        if not diff_fields(current_request, desired):
            return False
        existing.record = self.blocks.update(current.uuid, existing.uuid, desired)
        existing.uuid = existing.record.uuid
        self.store.save(state)
        return True

    # ════════════════════════════════════════════════════════════════════════
    # Import
    # ════════════════════════════════════════════════════════════════════════

    def import_pipeline(self, key: str, uuid: str) -> State:
        """Adopt an existing server pipeline (and its blocks) into state under ``key``.

        Imported blocks are keyed by their UUID.
        """
        state = self.store.load()
        if key in state.pipelines:
            raise ValidationError(
                f"pipeline key '{key}' is already managed",
                operation="import",
                resource_kind="pipeline",
                identifiers={"pipeline_key": key},
            )
        record = self.pipelines.read(uuid)
        pipeline_state = PipelineState(uuid=record.uuid, record=record)
        for block in record.blocks:
            pipeline_state.blocks[block.uuid] = BlockState(uuid=block.uuid, record=block)
        state.pipelines[key] = pipeline_state
        self.store.save(state)
        logger.info("Pipeline imported", pipeline_key=key, pipeline_uuid=uuid, blocks=len(pipeline_state.blocks))
        return state
