import json
import sys
import traceback
from pathlib import Path
from typing import Optional
from typing import Union

import loguru
from loguru import logger

# Keys whose values never reach a sink
MASKED_FIELDS = frozenset({"api_key", "x-api-key", "X-API-KEY"})
MASK = "***"

_LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<bold><white>{message}</white></bold> | <dim>{extra_json}</dim> {stacktrace}"
)


# Runs once at import time from mageai_sync/__init__.py; the CLI calls it again with user settings
def configure_logger(
    level: str = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    file_level: str = "DEBUG",
):
    """
    Configure loguru logger sinks.

    Args:
        level: Minimum level for the stdout sink
        log_file: Optional path of a JSON-lines log file
        file_level: Minimum level for the file sink
    """
    logger.remove()  # remove the default logger

    # stderr stays free for the CLI's own error output
    logger.add(
        sink=sys.stdout,
        level=level.upper(),
        diagnose=False,
        format=_LOG_FORMAT,
        filter=process_log_record,
    )

    if log_file:
        logger.add(
            sink=str(log_file),
            level=file_level.upper(),
            serialize=True,
            diagnose=False,
            filter=mask_record,
        )
        logger.debug("File logging enabled", log_file=str(log_file), level=file_level)


def mask_record(record: "loguru.Record") -> bool:
    """Replace secret values in the record's extra fields."""
    extra = record["extra"]
    for key in extra.keys() & MASKED_FIELDS:
        extra[key] = MASK
    return True


def process_log_record(record: "loguru.Record") -> bool:
    r"""
    Inject transformed metadata into each log record before they are passed to the formatter.

    1. Mask secrets, then render the "extra" field as JSON so it stays on one line.
    2. For error logs, add a traceback with \r instead of \n so that log collectors do not
       split the traceback into multiple events.
    """
    mask_record(record)
    extra = record["extra"]

    # serialize "extra" field to JSON; "extra" itself stays a dict for the other sinks
    record["extra_json"] = json.dumps(extra, default=str) if extra else ""

    # add stacktrace to log record
    record["stacktrace"] = ""
    if record["exception"]:
        err = record["exception"]
        stacktrace = get_formatted_stacktrace(err, replace_newline_character_with_carriage_return=True)
        record["stacktrace"] = stacktrace

    return True


def get_formatted_stacktrace(loguru_record_exception, replace_newline_character_with_carriage_return: bool) -> str:
    """Get the formatted stacktrace for the current exception."""
    exc_type, exc_value, exc_traceback = loguru_record_exception
    stacktrace_: list[str] = traceback.format_exception(exc_type, exc_value, exc_traceback)
    stacktrace: str = "".join(stacktrace_)
    if replace_newline_character_with_carriage_return:
        stacktrace = stacktrace.replace("\n", "\r")
    return stacktrace
