"""mageai_sync."""

from .monitoring.logger import configure_logger

# Configure logger with default settings (just console logging)
# The CLI reconfigures it with the level and log file from Settings
configure_logger()
