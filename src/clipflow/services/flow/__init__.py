"""Transformation flow orchestration: queue, state machine, recovery and detection."""
