"""Async CRUD helpers over the ORM models."""
