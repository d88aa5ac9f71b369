"""Addressbook - an address CRUD service with distance lookups.

Layers:
- **api**: FastAPI routers, schemas and middleware
- **core**: configuration, logging, exceptions, tracing
- **domain**: the address model, list query rules and service
- **infrastructure**: PostgreSQL access and the distance-matrix client
"""
