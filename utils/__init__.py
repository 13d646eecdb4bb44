"""Shared utilities for the backend."""
from utils.case import to_camel_key, top_level_keys_to_camel
from utils.log_config import configure_logging

__all__ = [
    "to_camel_key",
    "top_level_keys_to_camel",
    "configure_logging",
]
