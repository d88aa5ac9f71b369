"""API helpers.

- **responses**: orjson-backed default JSON response class
"""
