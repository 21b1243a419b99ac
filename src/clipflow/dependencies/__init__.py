"""FastAPI dependencies: database sessions and the flow services container."""
