"""Unit tests for reconciler.py (pipeline and block CRUD)."""

import json

import pytest

from mageai_sync.errors import APIError
from mageai_sync.errors import DecodeError
from mageai_sync.errors import TransportError
from mageai_sync.errors import ValidationError
from mageai_sync.models import BlockRequest
from mageai_sync.models import BlockType
from mageai_sync.models import PipelineRequest
from mageai_sync.models import PipelineType
from mageai_sync.reconciler import BlockReconciler
from mageai_sync.reconciler import PipelineReconciler
from mageai_sync.reconciler import join_path
from tests.consts import BLOCK_TYPES
from tests.consts import BLOCK_UUID
from tests.consts import INVALID_TYPES
from tests.consts import PIPELINE_TYPES
from tests.consts import PIPELINE_UUID


class TestJoinPath:
    """Tests for join_path."""

    def test_segments_joined_with_single_slash(self):
        assert join_path("pipelines", "p-1", "blocks") == "pipelines/p-1/blocks"

    def test_surrounding_slashes_stripped(self):
        assert join_path("/pipelines/", "/p-1") == "pipelines/p-1"


class TestPipelineCreate:
    """Tests for PipelineReconciler.create."""

    def test_create_success(self, stub_transport, pipeline_payload):
        """Test create posts the encoded request and returns the decoded pipeline."""
        transport = stub_transport({"pipeline": pipeline_payload()})

        pipeline = PipelineReconciler(transport).create(PipelineRequest(name="etl", type="python"))

        assert pipeline.uuid == PIPELINE_UUID
        assert pipeline.type is PipelineType.PYTHON
        method, path, body = transport.call.call_args.args
        assert (method, path) == ("POST", "pipelines")
        assert json.loads(body) == {"pipeline": {"name": "etl", "type": "python"}}

    @pytest.mark.parametrize("pipeline_type", PIPELINE_TYPES)
    def test_every_valid_type_is_sent(self, stub_transport, pipeline_payload, pipeline_type):
        transport = stub_transport({"pipeline": pipeline_payload(type=pipeline_type)})

        pipeline = PipelineReconciler(transport).create(PipelineRequest(name="etl", type=pipeline_type))

        assert pipeline.type.value == pipeline_type
        transport.call.assert_called_once()

    @pytest.mark.parametrize("pipeline_type", INVALID_TYPES)
    def test_invalid_type_rejected_before_request(self, stub_transport, pipeline_type):
        """Test an unknown type raises ValidationError and sends nothing."""
        transport = stub_transport()

        with pytest.raises(ValidationError) as exc_info:
            PipelineReconciler(transport).create(PipelineRequest(name="etl", type=pipeline_type))

        assert exc_info.value.operation == "create"
        assert exc_info.value.resource_kind == "pipeline"
        transport.call.assert_not_called()

    def test_duplicate_name_reported_as_api_error(self, stub_transport, error_payload):
        transport = stub_transport(error_payload(400, "PipelineAlreadyExists", "pipeline etl exists"))

        with pytest.raises(APIError) as exc_info:
            PipelineReconciler(transport).create(PipelineRequest(name="etl"))

        assert exc_info.value.code == 400
        assert exc_info.value.exception == "PipelineAlreadyExists"
        assert exc_info.value.identifiers == {"name": "etl"}


class TestPipelineReadUpdateDelete:
    """Tests for PipelineReconciler.read, update, delete and list."""

    def test_read_uses_item_path(self, stub_transport, pipeline_payload):
        transport = stub_transport({"pipeline": pipeline_payload()})

        pipeline = PipelineReconciler(transport).read(PIPELINE_UUID)

        assert pipeline.name == "etl"
        transport.call.assert_called_once_with("GET", "pipelines/p-1", None)

    def test_read_after_create_matches(self, fake_server):
        """Test a read immediately after create returns an equal record."""
        reconciler = PipelineReconciler(fake_server)

        created = reconciler.create(PipelineRequest(name="Nightly ETL", type="pyspark"))
        read = reconciler.read(created.uuid)

        assert read == created
        assert read.type is PipelineType.PYSPARK

    def test_update_not_found(self, stub_transport, error_payload):
        """Test updating a pipeline the server does not know raises APIError 404."""
        transport = stub_transport(error_payload(404, "NotFound", "no such pipeline"))

        with pytest.raises(APIError) as exc_info:
            PipelineReconciler(transport).update(PIPELINE_UUID, PipelineRequest(name="etl", type="streaming"))

        error = exc_info.value
        assert error.code == 404
        assert error.exception == "NotFound"
        assert error.api_message == "no such pipeline"
        assert error.operation == "update"
        assert error.identifiers == {"pipeline_uuid": PIPELINE_UUID}
        assert "NotFound, Status code: 404" in str(error)
        method, path, body = transport.call.call_args.args
        assert (method, path) == ("PUT", "pipelines/p-1")
        assert json.loads(body)["pipeline"]["type"] == "streaming"

    def test_update_invalid_type(self, stub_transport):
        transport = stub_transport()

        with pytest.raises(ValidationError):
            PipelineReconciler(transport).update(PIPELINE_UUID, PipelineRequest(name="etl", type="batch"))

        transport.call.assert_not_called()

    def test_delete(self, stub_transport, pipeline_payload):
        transport = stub_transport({"pipeline": pipeline_payload()})

        assert PipelineReconciler(transport).delete(PIPELINE_UUID) is None
        transport.call.assert_called_once_with("DELETE", "pipelines/p-1", None)

    def test_delete_error_envelope(self, stub_transport, error_payload):
        transport = stub_transport(error_payload(404, "NotFound"))

        with pytest.raises(APIError):
            PipelineReconciler(transport).delete(PIPELINE_UUID)

    @pytest.mark.parametrize("operation", ["read", "delete"])
    def test_empty_uuid_rejected(self, stub_transport, operation):
        """Test an empty identifier never produces a request to the collection path."""
        transport = stub_transport()

        with pytest.raises(ValidationError):
            getattr(PipelineReconciler(transport), operation)("")

        transport.call.assert_not_called()

    def test_list(self, stub_transport, pipeline_payload):
        transport = stub_transport({"pipelines": [pipeline_payload(), pipeline_payload(uuid="p-2", name="other")]})

        pipelines = PipelineReconciler(transport).list()

        assert [p.uuid for p in pipelines] == ["p-1", "p-2"]
        transport.call.assert_called_once_with("GET", "pipelines", None)


class TestBlockCreate:
    """Tests for BlockReconciler.create."""

    def test_create_data_loader(self, stub_transport):
        """Test creating a data loader returns the server-assigned uuid."""
        transport = stub_transport(
            {
                "block": {
                    "uuid": BLOCK_UUID,
                    "name": "extract",
                    "type": "data_loader",
                    "upstream_blocks": [],
                    "downstream_blocks": [],
                }
            }
        )

        block = BlockReconciler(transport).create(
            PIPELINE_UUID, BlockRequest(name="extract", type="data_loader", language="python")
        )

        assert block.uuid == BLOCK_UUID
        assert block.type is BlockType.DATA_LOADER
        method, path, body = transport.call.call_args.args
        assert (method, path) == ("POST", "pipelines/p-1/blocks")
        sent = json.loads(body)["block"]
        assert sent["name"] == "extract"
        assert sent["upstream_blocks"] == []
        assert "uuid" not in sent

    @pytest.mark.parametrize("block_type", BLOCK_TYPES)
    def test_every_valid_type_is_accepted(self, stub_transport, block_payload, block_type):
        transport = stub_transport({"block": block_payload(type=block_type)})

        block = BlockReconciler(transport).create(PIPELINE_UUID, BlockRequest(name="extract", type=block_type))

        assert block.type.value == block_type

    def test_bogus_type_rejected_before_request(self, stub_transport):
        """Test an unknown block type raises ValidationError with no network call."""
        transport = stub_transport()

        with pytest.raises(ValidationError) as exc_info:
            BlockReconciler(transport).create(PIPELINE_UUID, BlockRequest(name="extract", type="bogus"))

        assert "bogus" in str(exc_info.value)
        assert exc_info.value.identifiers["pipeline_uuid"] == PIPELINE_UUID
        assert transport.call.call_count == 0

    def test_create_requires_pipeline_uuid(self, stub_transport):
        transport = stub_transport()

        with pytest.raises(ValidationError):
            BlockReconciler(transport).create("", BlockRequest(name="extract", type="data_loader"))

        transport.call.assert_not_called()


class TestBlockReadUpdateDelete:
    """Tests for BlockReconciler item and collection operations."""

    def test_read_uses_singular_path(self, stub_transport, block_payload):
        transport = stub_transport({"block": block_payload()})

        block = BlockReconciler(transport).read(PIPELINE_UUID, BLOCK_UUID)

        assert block.uuid == BLOCK_UUID
        transport.call.assert_called_once_with("GET", "pipelines/p-1/block/b-9", None)

    def test_delete_uses_singular_path(self, stub_transport, block_payload):
        transport = stub_transport({"block": block_payload()})

        BlockReconciler(transport).delete(PIPELINE_UUID, BLOCK_UUID)

        transport.call.assert_called_once_with("DELETE", "pipelines/p-1/block/b-9", None)

    def test_update_uses_plural_path_and_full_body(self, stub_transport, block_payload):
        """Test update resubmits the whole block, upstream set included."""
        transport = stub_transport({"block": block_payload(upstream_blocks=["a", "z"])})
        desired = BlockRequest(name="extract", type="data_loader", upstream_blocks=frozenset({"z", "a"}))

        block = BlockReconciler(transport).update(PIPELINE_UUID, BLOCK_UUID, desired)

        assert block.upstream_blocks == frozenset({"a", "z"})
        method, path, body = transport.call.call_args.args
        assert (method, path) == ("PUT", "pipelines/p-1/blocks/b-9")
        assert json.loads(body)["block"]["upstream_blocks"] == ["a", "z"]

    def test_update_invalid_type(self, stub_transport):
        transport = stub_transport()

        with pytest.raises(ValidationError):
            BlockReconciler(transport).update(PIPELINE_UUID, BLOCK_UUID, BlockRequest(name="x", type="Transformer"))

        transport.call.assert_not_called()

    def test_read_missing_block(self, stub_transport, error_payload):
        transport = stub_transport(error_payload(404, "NotFound", "block b-9 not found"))

        with pytest.raises(APIError) as exc_info:
            BlockReconciler(transport).read(PIPELINE_UUID, BLOCK_UUID)

        assert exc_info.value.identifiers == {"pipeline_uuid": PIPELINE_UUID, "block_uuid": BLOCK_UUID}
        assert exc_info.value.operation == "read"
        assert exc_info.value.resource_kind == "block"

    @pytest.mark.parametrize(
        "pipeline_uuid,block_uuid",
        [("", BLOCK_UUID), (PIPELINE_UUID, ""), ("", "")],
        ids=["no_pipeline", "no_block", "neither"],
    )
    def test_empty_identifiers_rejected(self, stub_transport, pipeline_uuid, block_uuid):
        transport = stub_transport()

        with pytest.raises(ValidationError):
            BlockReconciler(transport).read(pipeline_uuid, block_uuid)

        transport.call.assert_not_called()

    def test_list(self, stub_transport, block_payload):
        transport = stub_transport(
            {"blocks": [block_payload(), block_payload(uuid="clean", name="clean", upstream_blocks=["b-9"])]}
        )

        blocks = BlockReconciler(transport).list(PIPELINE_UUID)

        assert [b.uuid for b in blocks] == ["b-9", "clean"]
        transport.call.assert_called_once_with("GET", "pipelines/p-1/blocks", None)

    def test_list_null_blocks_is_api_error(self, stub_transport):
        """Test ``{"blocks": null}`` surfaces as an APIError, not an empty pipeline."""
        transport = stub_transport({"blocks": None})

        with pytest.raises(APIError) as exc_info:
            BlockReconciler(transport).list(PIPELINE_UUID)

        assert exc_info.value.code == 0
        assert exc_info.value.operation == "list"

    def test_read_after_create_matches(self, fake_server):
        pipeline_uuid = fake_server.add_pipeline("etl")
        reconciler = BlockReconciler(fake_server)

        created = reconciler.create(pipeline_uuid, BlockRequest(name="extract", type="data_loader"))

        assert reconciler.read(pipeline_uuid, created.uuid) == created


class TestErrorPropagation:
    """Transport and decode failures reach the caller annotated and unretried."""

    def test_transport_error_annotated(self, stub_transport):
        transport = stub_transport(TransportError("unexpected status code: 502", status_code=502))

        with pytest.raises(TransportError) as exc_info:
            BlockReconciler(transport).read(PIPELINE_UUID, BLOCK_UUID)

        error = exc_info.value
        assert error.status_code == 502
        assert error.operation == "read"
        assert error.resource_kind == "block"
        assert error.identifiers == {"pipeline_uuid": PIPELINE_UUID, "block_uuid": BLOCK_UUID}
        assert transport.call.call_count == 1

    def test_decode_error_annotated(self, stub_transport):
        transport = stub_transport(b"<html>gateway</html>")

        with pytest.raises(DecodeError) as exc_info:
            PipelineReconciler(transport).read(PIPELINE_UUID)

        assert exc_info.value.operation == "read"
        assert str(exc_info.value).startswith("read pipeline pipeline_uuid=p-1: error unmarshalling JSON")
