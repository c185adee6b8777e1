"""Unit tests for graph.py."""

import pytest

from mageai_sync.errors import ValidationError
from mageai_sync.graph import BlockGraph
from mageai_sync.models import Block
from mageai_sync.models import BlockStatus
from mageai_sync.models import Pipeline
from mageai_sync.models import RetryConfig


@pytest.fixture
def diamond():
    """load -> (clean, enrich) -> export."""
    return [
        Block(uuid="load", downstream_blocks=frozenset({"clean", "enrich"})),
        Block(uuid="clean", upstream_blocks=frozenset({"load"}), downstream_blocks=frozenset({"export"})),
        Block(
            uuid="enrich",
            upstream_blocks=frozenset({"load"}),
            downstream_blocks=frozenset({"export"}),
            retry_config=RetryConfig(delay=30, retries=2),
        ),
        Block(uuid="export", upstream_blocks=frozenset({"clean", "enrich"})),
    ]


class TestBlockGraph:
    """Tests for BlockGraph construction and queries."""

    def test_from_blocks(self, diamond):
        graph = BlockGraph.from_blocks(diamond)

        assert graph.block_ids == frozenset({"load", "clean", "enrich", "export"})
        assert len(graph) == 4
        assert "clean" in graph
        assert "missing" not in graph
        assert graph.upstream_of("export") == frozenset({"clean", "enrich"})
        assert graph.downstream_of("load") == frozenset({"clean", "enrich"})
        assert graph.upstream_of("load") == frozenset()

    def test_from_pipeline_keeps_uuid(self, diamond):
        graph = BlockGraph.from_pipeline(Pipeline(uuid="p-1", blocks=diamond))

        assert graph.pipeline_uuid == "p-1"
        assert len(graph) == 4

    def test_duplicate_edges_collapse(self):
        graph = BlockGraph({"b": ["a", "a"], "a": []}, {"a": ["b", "b"]})

        assert graph.upstream_of("b") == frozenset({"a"})
        assert graph.downstream_of("a") == frozenset({"b"})
        assert graph.downstream_of("b") == frozenset()

    def test_unknown_block_raises_key_error(self, diamond):
        graph = BlockGraph.from_blocks(diamond)

        with pytest.raises(KeyError):
            graph.upstream_of("missing")
        with pytest.raises(KeyError):
            graph.downstream_of("missing")
        with pytest.raises(KeyError):
            graph.retry_config_of("missing")

    def test_retry_config_of(self, diamond):
        graph = BlockGraph.from_blocks(diamond)

        assert graph.retry_config_of("enrich") == RetryConfig(delay=30, retries=2)
        assert graph.retry_config_of("load") == RetryConfig()

    def test_upstream_executed(self, diamond):
        graph = BlockGraph.from_blocks(diamond)
        statuses = {"load": BlockStatus.EXECUTED, "clean": BlockStatus.EXECUTED, "enrich": BlockStatus.FAILED}

        assert graph.upstream_executed("clean", statuses)
        assert not graph.upstream_executed("export", statuses)
        assert graph.upstream_executed("load", {})

    def test_upstream_executed_missing_status(self, diamond):
        graph = BlockGraph.from_blocks(diamond)

        assert not graph.upstream_executed("clean", {"load": None})


class TestValidate:
    """Tests for dangling reference detection."""

    def test_consistent_graph(self, diamond):
        graph = BlockGraph.from_blocks(diamond)

        assert graph.dangling_references() == []
        graph.validate()

    def test_dangling_references(self):
        blocks = [
            Block(uuid="a", upstream_blocks=frozenset({"ghost"})),
            Block(uuid="b", downstream_blocks=frozenset({"phantom"})),
        ]
        graph = BlockGraph.from_blocks(blocks, pipeline_uuid="p-1")

        assert graph.dangling_references() == [("a", "upstream", "ghost"), ("b", "downstream", "phantom")]
        with pytest.raises(ValidationError) as exc_info:
            graph.validate()

        assert exc_info.value.identifiers == {"pipeline_uuid": "p-1"}
        assert "ghost" in str(exc_info.value)
