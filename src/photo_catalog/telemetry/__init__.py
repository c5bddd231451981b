from .log import StructuredFormatter, log_error, log_sync_event, setup_logging

__all__ = ["StructuredFormatter", "log_error", "log_sync_event", "setup_logging"]
