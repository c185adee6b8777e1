"""
State Store

Persists the last resolved record of every managed pipeline and block in a JSON file,
keyed by manifest key. A record read from the server always replaces the stored one
whole; nothing is merged.
"""

import os
import tempfile
from pathlib import Path
from typing import Dict
from typing import Union

import pydantic
from loguru import logger
from pydantic import BaseModel
from pydantic import Field

from mageai_sync.errors import ValidationError
from mageai_sync.models import Block
from mageai_sync.models import Pipeline

STATE_VERSION = 1


class BlockState(BaseModel):
    uuid: str
    record: Block


class PipelineState(BaseModel):
    uuid: str
    record: Pipeline
    blocks: Dict[str, BlockState] = Field(default_factory=dict)

    def block_key(self, block_uuid: str) -> str:
        """Manifest key of the block with the given UUID, or KeyError."""
        for key, block in self.blocks.items():
            if block.uuid == block_uuid:
                return key
        raise KeyError(block_uuid)


class State(BaseModel):
    version: int = STATE_VERSION
    pipelines: Dict[str, PipelineState] = Field(default_factory=dict)


class StateStore:
    """JSON file holding the State, written atomically."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> State:
        """Return the stored State, or an empty one if the file does not exist yet."""
        if not self.path.exists():
            logger.debug("No state file, starting empty", state_file=str(self.path))
            return State()
        try:
            state = State.model_validate_json(self.path.read_bytes())
        except pydantic.ValidationError as e:
            raise ValidationError(f"Corrupt state file {self.path}: {e}") from e
        if state.version != STATE_VERSION:
            raise ValidationError(f"Unsupported state file version {state.version} in {self.path}")
        return state

    def save(self, state: State) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = state.model_dump_json(indent=2)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                tmp.write(payload)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug("State saved", state_file=str(self.path), pipelines=len(state.pipelines))
