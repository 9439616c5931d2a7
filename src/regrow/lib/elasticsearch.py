"""Shared Elasticsearch utilities.

Client construction, index bootstrap and response helpers used across
routers, the discovery engine and the engagement handlers.
"""

import logging
import os

from elastic_transport import ObjectApiResponse
from elasticsearch import AsyncElasticsearch
from fastapi import HTTPException

logger = logging.getLogger(__name__)

PRODUCTS_INDEX = "products"
USERS_INDEX = "users"

DEFAULT_ELASTICSEARCH_URL = "http://localhost:9200"

PRODUCTS_MAPPING = {
    "properties": {
        "id": {"type": "keyword"},
        "seller": {"type": "keyword"},
        # ``title.raw`` backs case-insensitive substring filtering.
        "title": {
            "type": "text",
            "fields": {"raw": {"type": "keyword", "ignore_above": 512}},
        },
        "description": {"type": "text"},
        "price": {"type": "double"},
        "category": {"type": "keyword"},
        "location": {"type": "keyword"},
        "images": {"type": "keyword", "index": False},
        "status": {"type": "keyword"},
        "liked_by": {"type": "keyword"},
        "share_count": {"type": "integer"},
        "created_at": {"type": "date"},
    }
}

USERS_MAPPING = {
    "properties": {
        "id": {"type": "keyword"},
        "viewed_history": {"type": "keyword"},
        "shared_history": {"type": "keyword"},
    }
}


def create_es_client() -> AsyncElasticsearch:
    """Build the application-scoped client from ``ELASTICSEARCH_*`` env vars."""
    url = os.environ.get("ELASTICSEARCH_URL", DEFAULT_ELASTICSEARCH_URL)
    api_key = os.environ.get("ELASTICSEARCH_API_KEY")
    if api_key:
        return AsyncElasticsearch(url, api_key=api_key)
    return AsyncElasticsearch(url)


async def ensure_indices(es) -> None:
    """Create the ``products`` and ``users`` indices if they are missing."""
    for index, mapping in ((PRODUCTS_INDEX, PRODUCTS_MAPPING), (USERS_INDEX, USERS_MAPPING)):
        exists = await es.indices.exists(index=index)
        if exists:
            continue
        logger.info("Creating index %s", index)
        await es.indices.create(index=index, mappings=mapping)


def unwrap_es_response(resp) -> dict:
    """Unwrap an Elasticsearch response, handling both ObjectApiResponse and dict.

    Raises ``HTTPException`` with 502 if the response type is unexpected.
    """
    if isinstance(resp, ObjectApiResponse):
        return resp.body
    elif isinstance(resp, dict):
        return resp
    else:
        logger.error("Unexpected Elasticsearch response type: %s", type(resp))
        raise HTTPException(status_code=502, detail="Invalid Elasticsearch response")


def hit_sources(resp) -> list[dict]:
    """Return the ``_source`` of every hit in a search response."""
    data = unwrap_es_response(resp)
    return [hit.get("_source") or {} for hit in data.get("hits", {}).get("hits", [])]
