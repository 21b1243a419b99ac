"""Clipboard buffer model: classification, self-write marker, paste trigger."""
