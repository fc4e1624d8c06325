"""Tests for the marketplace search service.

Backends (OpenSearch, PostgreSQL, the embedding service, Redis) are replaced
by the doubles in ``tests.fakes`` so the suite runs without infrastructure.
"""
