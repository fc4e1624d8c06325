"""Search retrievers for keyword and semantic workflows.

Retrievers encapsulate how candidates are fetched from backends (OpenSearch,
pgvector plus the relational catalog) before merging. The response cache
lives here as well since it short-circuits retrieval.
"""
