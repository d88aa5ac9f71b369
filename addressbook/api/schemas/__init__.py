"""Pydantic schema models for API request/response validation.

- **addresses**: address request and response bodies
- **errors**: the ``ErrorResponse`` body every failure is rendered with
"""
