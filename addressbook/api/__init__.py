"""HTTP layer of the Addressbook service.

- **main**: application factory and lifespan
- **routers**: ``/addresses`` resource plus ``/health`` and ``/info``
- **dependencies**: per-request wiring of repository, clients and service
- **middleware**: correlation IDs, request logging, security headers and
  exception handlers
- **schemas**: request and response bodies
"""
