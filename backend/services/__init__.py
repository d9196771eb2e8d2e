"""Services package."""
from services.parameters import ParameterError, ParameterStore
from services.thread_registry import ThreadRegistry

__all__ = ["ParameterError", "ParameterStore", "ThreadRegistry"]
