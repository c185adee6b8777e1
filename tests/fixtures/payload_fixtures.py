"""Fixtures building Mage AI wire payloads."""

import json
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

import pytest


def to_wire(payload: Any) -> bytes:
    """Encode a payload exactly as the server would send it."""
    return json.dumps(payload).encode("utf-8")


@pytest.fixture
def wire():
    """Expose to_wire to tests."""
    return to_wire


@pytest.fixture
def block_payload():
    """Create a block dict as returned inside ``{"block": ...}``."""

    def _create_block(
        uuid: str = "b-9",
        name: str = "extract",
        type: str = "data_loader",
        language: str = "python",
        content: str = "",
        upstream_blocks: Optional[List[str]] = None,
        downstream_blocks: Optional[List[str]] = None,
        status: Optional[str] = "not_executed",
        **overrides: Any,
    ) -> Dict[str, Any]:
        payload = {
            "all_upstream_blocks_executed": True,
            "color": None,
            "configuration": {},
            "content": content,
            "downstream_blocks": downstream_blocks or [],
            "executor_type": "local_python",
            "extension_uuid": None,
            "has_callback": False,
            "language": language,
            "name": name,
            "pipelines": ["p-1"],
            "priority": None,
            "retry_config": None,
            "status": status,
            "timeout": None,
            "type": type,
            "upstream_blocks": upstream_blocks or [],
            "uuid": uuid,
        }
        payload.update(overrides)
        return payload

    return _create_block


@pytest.fixture
def pipeline_payload():
    """Create a pipeline dict as returned inside ``{"pipeline": ...}``."""

    def _create_pipeline(
        uuid: str = "p-1",
        name: str = "etl",
        type: str = "python",
        blocks: Optional[List[Dict[str, Any]]] = None,
        **overrides: Any,
    ) -> Dict[str, Any]:
        payload = {
            "blocks": blocks or [],
            "cache_block_output_in_memory": False,
            "created_at": "2024-05-01 10:00:00.000000+00:00",
            "description": None,
            "executor_count": 1,
            "name": name,
            "retry_config": {"delay": 5, "exponential_backoff": True, "max_delay": 60, "retries": 3},
            "run_pipeline_in_one_process": False,
            "tags": ["nightly"],
            "type": type,
            "updated_at": "2024-05-01 10:00:00.000000+00:00",
            "uuid": uuid,
            "variables_dir": "/home/src/mage_data/default_repo",
        }
        payload.update(overrides)
        return payload

    return _create_pipeline


@pytest.fixture
def error_payload():
    """Create an error envelope."""

    def _create_error(code: int = 404, exception: str = "NotFound", message: str = "no such pipeline"):
        return {"error": {"code": code, "exception": exception, "message": message}}

    return _create_error
