"""Hybrid search components for keyword + semantic ranking.

Includes the ``SearchManager`` which coordinates full-text (keyword) and
vector similarity (semantic) retrieval and merges results.
"""
