"""Vector store adapters.

Primary components:
- ``base``: abstract ``VectorStore`` interface, ``VectorMatch`` and exceptions.
- ``pgvector``: PostgreSQL/pgvector implementation of the interface.
"""
