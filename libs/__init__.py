"""Shared libraries for the marketplace search platform.

Subpackages:
- ``libs.common``: configuration, logging, metrics, and tracing.
- ``libs.vector_store``: vector store abstraction and the pgvector backend.

Notes:
- Avoid service-specific logic; keep modules cohesive and broadly useful.
"""
