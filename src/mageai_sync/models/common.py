"""
Shared Value Objects

Retry policy and SQL/dbt settings attached to pipelines and blocks.
"""

from typing import Any
from typing import List

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import model_validator


class WireModel(BaseModel):
    """Base for records decoded from the Mage AI API.

    The server sends ``null`` for fields it has no value for; those fall back to the
    field default instead of failing validation.
    """

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class RetryConfig(WireModel):
    """Server-side execution retry policy.

    Describes how the Mage AI scheduler retries a failed pipeline or block run. It is
    never applied to this client's own HTTP calls.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    delay: int = 0
    """Initial delay (in seconds) before retry."""

    exponential_backoff: bool = False
    """If true, the delay is multiplied by 2 for each subsequent retry."""

    max_delay: int = 0
    """Ceiling on the delay between two retries (0 means no ceiling)."""

    retries: int = 0
    """Maximum number of retries."""

    def delays(self) -> List[int]:
        """Delay in seconds before each retry attempt, in order."""
        schedule = []
        current = self.delay
        for _ in range(max(self.retries, 0)):
            wait = current
            if self.max_delay > 0:
                wait = min(wait, self.max_delay)
            schedule.append(wait)
            if self.exponential_backoff:
                current *= 2
        return schedule


class BlockConfiguration(WireModel):
    """SQL/dbt settings of a block; empty for other block types."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    data_provider: str = ""  # database or warehouse the SQL block connects to
    data_provider_database: str = ""
    data_provider_profile: str = ""  # dbt profile target
    data_provider_schema: str = ""
    data_provider_table: str = ""
    export_write_policy: str = ""  # append, replace or fail
    use_raw_sql: str = ""
