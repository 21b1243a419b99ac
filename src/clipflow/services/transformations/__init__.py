"""Transformation strategies: local text algorithms, pipelines and the LLM call."""
