"""Index document shapes for catalog resources and documentation pages."""

import hashlib
from typing import Any, Dict

from ..models import DocPage

_KEYWORD = {"type": "keyword"}
_TEXT = {"type": "text"}
_BOOLEAN = {"type": "boolean"}

CATALOG_MAPPING = {
    "mappings": {
        "properties": {
            "name": {"type": "text", "fields": {"raw": _KEYWORD}},
            "description": _TEXT,
            "long_description": _TEXT,
            "framework": _KEYWORD,
            "frameworks": _KEYWORD,
            "category": _KEYWORD,
            "tags": _KEYWORD,
            "author": _KEYWORD,
            "resource_type": _KEYWORD,
            "has_typescript": _BOOLEAN,
            "is_free": _BOOLEAN,
            "is_premium": _BOOLEAN,
            "is_featured": _BOOLEAN,
            "demo_url": _KEYWORD,
            "github_url": _KEYWORD,
            "npm_package": _KEYWORD,
            "license": _KEYWORD,
            "created_at": {"type": "date"},
            "updated_at": {"type": "date"},
        }
    },
    "settings": {
        "index": {
            "number_of_shards": 1,
            "number_of_replicas": 0,
        }
    },
}

DOC_MAPPING = {
    "mappings": {
        "properties": {
            "title": _TEXT,
            "content": _TEXT,
            "headings": _TEXT,
            "url": _KEYWORD,
            "category": _KEYWORD,
            "tags": _KEYWORD,
            "type": _KEYWORD,
        }
    },
    "settings": {
        "index": {
            "number_of_shards": 1,
            "number_of_replicas": 0,
        }
    },
}

_FLAGS = ("has_typescript", "is_free", "is_premium", "is_featured")


def _timestamp(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


def resource_document(row: Dict[str, Any]) -> Dict[str, Any]:
    """Keyword index document for one catalog row.

    ``framework`` holds the first framework (``"unknown"`` when there is
    none) so framework filters match a single keyword. Flags are copied only
    when the row carries them.
    """
    frameworks = list(row.get("frameworks") or [])
    document = {
        "name": row.get("name") or "",
        "description": row.get("description") or "",
        "long_description": row.get("long_description") or "",
        "framework": frameworks[0] if frameworks else "unknown",
        "frameworks": frameworks,
        "category": row.get("category"),
        "tags": list(row.get("tags") or []),
        "author": row.get("author"),
        "resource_type": row.get("resource_type"),
        "demo_url": row.get("demo_url"),
        "github_url": row.get("github_url"),
        "npm_package": row.get("npm_package"),
        "license": row.get("license"),
        "created_at": _timestamp(row.get("created_at")),
        "updated_at": _timestamp(row.get("updated_at")),
    }
    for flag in _FLAGS:
        if row.get(flag) is not None:
            document[flag] = bool(row[flag])
    return document


def doc_document(page: DocPage) -> Dict[str, Any]:
    return {
        "title": page.title,
        "content": page.content,
        "url": page.url,
        "category": page.category,
        "tags": list(page.tags),
        "headings": list(page.headings),
        "type": page.type.value,
    }


def vector_text(row: Dict[str, Any]) -> str:
    """Text embedded for a resource: name, description, framework, category and tags."""
    parts = [row.get("name") or "", row.get("description") or ""]
    frameworks = row.get("frameworks") or []
    if frameworks:
        parts.append(f"Framework: {frameworks[0]}")
    if row.get("category"):
        parts.append(f"Category: {row['category']}")
    tags = row.get("tags") or []
    if tags:
        parts.append(f"Tags: {', '.join(tags)}")
    return " | ".join(part for part in parts if part)


def vector_metadata(row: Dict[str, Any], text: str) -> Dict[str, Any]:
    """Filterable metadata stored next to a resource vector."""
    frameworks = row.get("frameworks") or []
    return {
        "name": row.get("name"),
        "framework": frameworks[0] if frameworks else None,
        "category": row.get("category"),
        "tags": list(row.get("tags") or []),
        "content_hash": hashlib.sha256(text.encode()).hexdigest(),
    }
