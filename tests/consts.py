"""Constant values used for tests."""

from pathlib import Path

THIS_DIR = Path(__file__).parent
PROJECT_DIR = (THIS_DIR / "../").resolve()

TEST_HOST = "https://mage.test.local"
TEST_API_KEY = "test-api-key"
PIPELINE_UUID = "p-1"
BLOCK_UUID = "b-9"

PIPELINE_TYPES = ["integration", "pyspark", "python", "streaming"]
BLOCK_TYPES = [
    "callback",
    "chart",
    "conditional",
    "custom",
    "data_exporter",
    "data_loader",
    "dbt",
    "extension",
    "global_data_product",
    "markdown",
    "scratchpad",
    "sensor",
    "transformer",
]
INVALID_TYPES = ["bogus", "", "Python", "DATA_LOADER", "data loader", " python"]
