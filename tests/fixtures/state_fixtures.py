"""Fixtures for manifests and state files."""

from textwrap import dedent

import pytest

from mageai_sync.manifest import parse_manifest
from mageai_sync.state import StateStore


@pytest.fixture
def manifest_yaml():
    """A two-block pipeline: extract -> clean."""
    return dedent(
        """
        pipelines:
          - key: etl
            name: etl
            type: python
            blocks:
              - key: extract
                type: data_loader
                language: python
                content: "print('extract')"
              - key: clean
                type: transformer
                language: python
                upstream: [extract]
        """
    )


@pytest.fixture
def manifest(manifest_yaml):
    return parse_manifest(manifest_yaml)


@pytest.fixture
def state_store(tmp_path):
    """StateStore backed by a file in a temporary directory."""
    return StateStore(tmp_path / "state" / "mageai-state.json")
