"""
Shared schemas for the portfolio catalog editor.

Pydantic models and the payload validator used by the API server and by
tooling that prepares requests for it.
"""

__version__ = "0.1.0"
