"""Search service package.

Layout:
- ``api``: HTTP endpoints for unified search, suggestions and similar items.
- ``hybrid``: keyword + semantic search orchestration.
- ``ranking``: hybrid result merging.
- ``retrievers``: OpenSearch, pgvector/catalog retrievers and the response cache.
"""
