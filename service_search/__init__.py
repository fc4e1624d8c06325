"""Marketplace search service."""
