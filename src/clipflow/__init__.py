"""ClipFlow: a clipboard transformation flow orchestrator."""

__version__ = "0.1.0"
