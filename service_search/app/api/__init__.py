"""API subpackage for the search service.

Routers expose unified search, suggestions, popular queries, similar
components and cache invalidation. The transport layer stays thin and
delegates to ``SearchManager``.
"""
