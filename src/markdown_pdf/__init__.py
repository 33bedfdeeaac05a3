"""Batch conversion of Markdown documents into styled PDF and HTML."""

from .config import AppConfig, apply_inputs, load_config
from .context import ActionsContext, ConsoleContext, ExecutionContext
from .core import ConversionError, ConversionService
from .models import BatchResult, ConversionResult, Manifest

__all__ = [
    "ActionsContext",
    "AppConfig",
    "BatchResult",
    "ConsoleContext",
    "ConversionError",
    "ConversionResult",
    "ConversionService",
    "ExecutionContext",
    "Manifest",
    "apply_inputs",
    "load_config",
]
