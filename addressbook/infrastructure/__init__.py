"""Infrastructure layer: persistence and third-party integrations.

- **database**: Async PostgreSQL access with SQLAlchemy 2.0 and asyncpg,
  session lifecycle, and the generic repository
- **distance_matrix**: httpx client for the distancematrix.ai API

Domain code depends on these through FastAPI dependencies, never by
creating engines or HTTP clients itself.
"""
