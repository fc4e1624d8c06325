"""Index maintenance for the search backends.

Loads catalog resources and documentation pages into the OpenSearch indices
and resource embeddings into the vector store, and reports index sizes.
"""
