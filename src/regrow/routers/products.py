"""Products router – listing discovery and engagement endpoints.

GET /products
    Newest listings, or the popularity ranking with ``sort=popular``.

GET /products/recommend
    Personalized recommendations for the identified visitor.

GET /products/{listing_id}
    Listing detail; records a view for identified visitors.

POST /products/{listing_id}/like
    Toggle the visitor's like.

POST /products/{listing_id}/share
    Count a share and record it in the visitor's history (best effort).
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field

from ..lib.discovery import DiscoveryMode, DiscoveryState, discover
from ..lib.discovery.store import find_listing
from ..lib.engagement import LikeState, increment_share, record_share_history, record_view, toggle_like
from ..models import Listing, ListingDetail, ListingSummary
from ..security import OptionalUserId, RequireUserId, verify_api_key

router = APIRouter(tags=["products"], dependencies=[Depends(verify_api_key)])

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class ProductListResponse(BaseModel):
    """Ordered listings and the strategy that produced them."""

    strategy: DiscoveryState
    products: list[ListingSummary]


class ProductDetailResponse(BaseModel):
    product: ListingDetail


class ShareResponse(BaseModel):
    share_count: int = Field(..., ge=0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _discover(
    request: Request,
    mode: DiscoveryMode,
    user_id: str | None,
    q: str | None,
    category: str | None,
) -> ProductListResponse:
    es = request.app.state.es
    try:
        result = await discover(es, user_id=user_id, keyword=q, mode=mode, category=category)
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Discovery failed (mode=%s)", mode.value)
        raise HTTPException(status_code=502, detail="Could not load listings") from exc
    return ProductListResponse(
        strategy=result.strategy,
        products=[ListingSummary.from_listing(listing) for listing in result.listings],
    )


async def _get_listing_or_404(es, listing_id: str) -> Listing:
    try:
        listing = await find_listing(es, listing_id)
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Listing lookup failed for %s", listing_id)
        raise HTTPException(status_code=502, detail="Could not load listing") from exc
    if listing is None:
        raise HTTPException(status_code=404, detail="not_found")
    return listing


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/products", response_model=ProductListResponse)
async def products_list(
    request: Request,
    user_id: OptionalUserId,
    q: str | None = Query(None, description="Case-insensitive title substring"),
    category: str | None = Query(None, description="Exact category label"),
    sort: str | None = Query(None, description="``popular`` for the popularity ranking"),
) -> ProductListResponse:
    """Newest listings matching the filter, or the most popular ones."""
    mode = DiscoveryMode.popular if sort == "popular" else DiscoveryMode.default
    return await _discover(request, mode, user_id, q, category)


@router.get("/products/recommend", response_model=ProductListResponse)
async def products_recommend(
    request: Request,
    user_id: OptionalUserId,
    q: str | None = Query(None, description="Optional search keyword"),
    category: str | None = Query(None, description="Exact category label"),
) -> ProductListResponse:
    """Listings ordered by inferred interest, newest first within a tier."""
    return await _discover(request, DiscoveryMode.recommend, user_id, q, category)


@router.get("/products/{listing_id}", response_model=ProductDetailResponse)
async def products_detail(
    request: Request,
    listing_id: str,
    user_id: OptionalUserId,
) -> ProductDetailResponse:
    es = request.app.state.es
    listing = await _get_listing_or_404(es, listing_id)

    if user_id is not None:
        try:
            await record_view(es, user_id, listing.id)
        except Exception as exc:
            logger.exception("Failed to record view of %s", listing.id)
            raise HTTPException(status_code=502, detail="Could not record view") from exc

    return ProductDetailResponse(product=ListingDetail.for_viewer(listing, user_id))


@router.post("/products/{listing_id}/like", response_model=LikeState)
async def products_like(
    request: Request,
    listing_id: str,
    user_id: RequireUserId,
) -> LikeState:
    es = request.app.state.es
    listing = await _get_listing_or_404(es, listing_id)
    try:
        return await toggle_like(es, listing.id, user_id)
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to toggle like on %s", listing.id)
        raise HTTPException(status_code=502, detail="Could not update like") from exc


@router.post("/products/{listing_id}/share", response_model=ShareResponse)
async def products_share(
    request: Request,
    listing_id: str,
    user_id: OptionalUserId,
) -> ShareResponse:
    es = request.app.state.es
    listing = await _get_listing_or_404(es, listing_id)
    try:
        share_count = await increment_share(es, listing.id)
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Failed to record share of %s", listing.id)
        raise HTTPException(status_code=502, detail="Could not record share") from exc

    # The share is already counted; a failed history write is only logged.
    if user_id is not None:
        try:
            await record_share_history(es, user_id, listing.id)
        except Exception:
            logger.exception("Failed to record share history of %s for %s", listing.id, user_id)
    return ShareResponse(share_count=share_count)
