"""Create/Read/Update/Delete of Mage AI pipelines and blocks.

Every operation is exactly one blocking round-trip through the injected transport:

    desired record -> type check -> codec.encode -> transport.call -> codec.decode
                   -> Success: resource | Failure: APIError

The enumerated ``type`` of a write request is checked before anything is sent, so
an invalid literal never costs a round-trip. Nothing is retried; every failure is
raised annotated with the operation, resource kind and identifiers involved.

Path layout (the singular ``block`` on item read/delete is what the server expects):

    pipelines                          POST create, GET list
    pipelines/{uuid}                   GET, PUT, DELETE
    pipelines/{pipeline}/blocks        POST create, GET list
    pipelines/{pipeline}/blocks/{uuid} PUT
    pipelines/{pipeline}/block/{uuid}  GET, DELETE
"""

from typing import Callable
from typing import Dict
from typing import List
from typing import Optional

from loguru import logger

from mageai_sync import codec
from mageai_sync.errors import APIError
from mageai_sync.errors import MageAISyncError
from mageai_sync.errors import ValidationError
from mageai_sync.models import Block
from mageai_sync.models import BlockRequest
from mageai_sync.models import BlockType
from mageai_sync.models import Pipeline
from mageai_sync.models import PipelineRequest
from mageai_sync.models import PipelineType

PIPELINES_API_PATH = "pipelines"
BLOCKS_API_PATH = "blocks"
BLOCK_API_PATH = "block"

GET = "GET"
POST = "POST"
PUT = "PUT"
DELETE = "DELETE"


def join_path(*segments: str) -> str:
    """Join path segments with a single ``/``; identifiers are opaque and used as-is."""
    return "/".join(segment.strip("/") for segment in segments)


class Reconciler:
    """Shared request/decode/classify cycle, parametrised by resource kind."""

    kind = "resource"
    type_enum = None

    def __init__(self, transport):
        self.transport = transport

    def _check_type(self, operation: str, value: str, identifiers: Dict[str, str]) -> None:
        if not self.type_enum.is_valid(value):
            raise ValidationError(
                f"invalid {self.kind} type: {value!r}",
                operation=operation,
                resource_kind=self.kind,
                identifiers=identifiers,
            )

    def _check_identifiers(self, operation: str, identifiers: Dict[str, str]) -> None:
        missing = [name for name, value in identifiers.items() if not value]
        if missing:
            raise ValidationError(
                f"missing identifier(s): {', '.join(missing)}",
                operation=operation,
                resource_kind=self.kind,
                identifiers=identifiers,
            )

    def _round_trip(
        self,
        operation: str,
        method: str,
        path: str,
        decode: Callable[[bytes], codec.Decoded],
        identifiers: Dict[str, str],
        body: Optional[bytes] = None,
    ):
        try:
            raw = self.transport.call(method, path, body)
            decoded = decode(raw)
        except MageAISyncError as e:
            logger.error(
                f"Error during {operation} {self.kind}",
                error_type=type(e).__name__,
                error=e.message,
                method=method,
                path=path,
                **identifiers,
            )
            raise e.annotate(operation, self.kind, identifiers)

        if isinstance(decoded, codec.Failure):
            error = decoded.error
            logger.error(
                f"Mage AI reported an error during {operation} {self.kind}",
                code=error.code,
                exception=error.exception,
                api_message=error.message,
                path=path,
                **identifiers,
            )
            raise APIError(
                code=error.code,
                exception=error.exception,
                message=error.message,
                operation=operation,
                resource_kind=self.kind,
                identifiers=identifiers,
            )
        return decoded.value


class PipelineReconciler(Reconciler):
    """Keep remote pipelines in sync with desired PipelineRequest records."""

    kind = "pipeline"
    type_enum = PipelineType

    def create(self, desired: PipelineRequest) -> Pipeline:
        identifiers = {"name": desired.name}
        self._check_type("create", desired.type, identifiers)
        pipeline = self._round_trip(
            "create",
            POST,
            PIPELINES_API_PATH,
            codec.decode_pipeline,
            identifiers,
            body=codec.encode_pipeline(desired),
        )
        logger.info("Pipeline created", pipeline_uuid=pipeline.uuid, name=pipeline.name, type=pipeline.type.value)
        return pipeline

    def read(self, uuid: str) -> Pipeline:
        identifiers = {"pipeline_uuid": uuid}
        self._check_identifiers("read", identifiers)
        return self._round_trip("read", GET, join_path(PIPELINES_API_PATH, uuid), codec.decode_pipeline, identifiers)

    def update(self, uuid: str, desired: PipelineRequest) -> Pipeline:
        identifiers = {"pipeline_uuid": uuid}
        self._check_identifiers("update", identifiers)
        self._check_type("update", desired.type, identifiers)
        pipeline = self._round_trip(
            "update",
            PUT,
            join_path(PIPELINES_API_PATH, uuid),
            codec.decode_pipeline,
            identifiers,
            body=codec.encode_pipeline(desired),
        )
        logger.info("Pipeline updated", pipeline_uuid=pipeline.uuid, name=pipeline.name, type=pipeline.type.value)
        return pipeline

    def delete(self, uuid: str) -> None:
        """Delete a pipeline; the response is decoded only to detect an error envelope."""
        identifiers = {"pipeline_uuid": uuid}
        self._check_identifiers("delete", identifiers)
        self._round_trip("delete", DELETE, join_path(PIPELINES_API_PATH, uuid), codec.decode_pipeline, identifiers)
        logger.info("Pipeline deleted", pipeline_uuid=uuid)

    def list(self) -> List[Pipeline]:
        return self._round_trip("list", GET, PIPELINES_API_PATH, codec.decode_pipelines, {})


class BlockReconciler(Reconciler):
    """Keep the blocks of a remote pipeline in sync with desired BlockRequest records."""

    kind = "block"
    type_enum = BlockType

    def create(self, pipeline_uuid: str, desired: BlockRequest) -> Block:
        identifiers = {"pipeline_uuid": pipeline_uuid, "name": desired.name}
        self._check_identifiers("create", {"pipeline_uuid": pipeline_uuid})
        self._check_type("create", desired.type, identifiers)
        block = self._round_trip(
            "create",
            POST,
            join_path(PIPELINES_API_PATH, pipeline_uuid, BLOCKS_API_PATH),
            codec.decode_block,
            identifiers,
            body=codec.encode_block(desired),
        )
        logger.info("Block created", pipeline_uuid=pipeline_uuid, block_uuid=block.uuid, name=block.name)
        return block

    def read(self, pipeline_uuid: str, uuid: str) -> Block:
        identifiers = {"pipeline_uuid": pipeline_uuid, "block_uuid": uuid}
        self._check_identifiers("read", identifiers)
        return self._round_trip(
            "read",
            GET,
            join_path(PIPELINES_API_PATH, pipeline_uuid, BLOCK_API_PATH, uuid),
            codec.decode_block,
            identifiers,
        )

    def update(self, pipeline_uuid: str, uuid: str, desired: BlockRequest) -> Block:
        """Resubmit the full block; upstream_blocks is replaced wholesale, never diffed."""
        identifiers = {"pipeline_uuid": pipeline_uuid, "block_uuid": uuid}
        self._check_identifiers("update", identifiers)
        self._check_type("update", desired.type, identifiers)
        block = self._round_trip(
            "update",
            PUT,
            join_path(PIPELINES_API_PATH, pipeline_uuid, BLOCKS_API_PATH, uuid),
            codec.decode_block,
            identifiers,
            body=codec.encode_block(desired),
        )
        logger.info("Block updated", pipeline_uuid=pipeline_uuid, block_uuid=block.uuid, name=block.name)
        return block

    def delete(self, pipeline_uuid: str, uuid: str) -> None:
        identifiers = {"pipeline_uuid": pipeline_uuid, "block_uuid": uuid}
        self._check_identifiers("delete", identifiers)
        self._round_trip(
            "delete",
            DELETE,
            join_path(PIPELINES_API_PATH, pipeline_uuid, BLOCK_API_PATH, uuid),
            codec.decode_block,
            identifiers,
        )
        logger.info("Block deleted", pipeline_uuid=pipeline_uuid, block_uuid=uuid)

    def list(self, pipeline_uuid: str) -> List[Block]:
        """All blocks of a pipeline. A ``null`` list from the server is an APIError."""
        identifiers = {"pipeline_uuid": pipeline_uuid}
        self._check_identifiers("list", identifiers)
        return self._round_trip(
            "list",
            GET,
            join_path(PIPELINES_API_PATH, pipeline_uuid, BLOCKS_API_PATH),
            codec.decode_blocks,
            identifiers,
        )
