"""Domain layer: entities, repositories, query rules and services.

Each subpackage owns one aggregate. Routers talk to services; services talk
to repositories and infrastructure clients.
"""
