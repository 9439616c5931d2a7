"""Document and response models for marketplace listings and user history."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

# Max entries kept in each per-user history sequence.
HISTORY_LIMIT = 50


class ListingStatus(str, Enum):
    selling = "selling"
    reserved = "reserved"
    sold = "sold"


class Listing(BaseModel):
    """A listing document from the ``products`` index.

    Every field except ``id`` has a default so that projected documents
    (e.g. only ``id``, ``title`` and ``category``) still validate.
    """

    id: str = Field(..., description="Listing identity (also the document _id)")
    seller: str | None = Field(None, description="Identity of the selling user")
    title: str = Field("", description="Listing title")
    description: str = Field("", description="Free-text description")
    price: float = Field(0, ge=0, description="Asking price")
    category: str | None = Field(None, description="Category label")
    location: str | None = Field(None, description="Location label")
    images: list[str] = Field(default_factory=list, description="Ordered image references")
    status: ListingStatus = Field(ListingStatus.selling)
    liked_by: list[str] = Field(
        default_factory=list, description="Identities of users who liked the listing"
    )
    share_count: int = Field(0, ge=0)
    created_at: datetime | None = None

    @field_validator("liked_by", mode="before")
    @classmethod
    def _dedupe_liked_by(cls, v):
        if v is None:
            return []
        return list(dict.fromkeys(v))

    @field_validator("share_count", mode="before")
    @classmethod
    def _default_share_count(cls, v):
        return 0 if v is None else v

    @property
    def like_count(self) -> int:
        return len(self.liked_by)


class ListingSummary(BaseModel):
    """Listing projection returned by the list endpoints."""

    id: str
    title: str
    price: float
    category: str | None = None
    location: str | None = None
    images: list[str] = Field(default_factory=list)
    status: ListingStatus = ListingStatus.selling
    like_count: int = 0
    share_count: int = 0
    created_at: datetime | None = None

    @classmethod
    def from_listing(cls, listing: Listing) -> "ListingSummary":
        return cls(
            id=listing.id,
            title=listing.title,
            price=listing.price,
            category=listing.category,
            location=listing.location,
            images=listing.images,
            status=listing.status,
            like_count=listing.like_count,
            share_count=listing.share_count,
            created_at=listing.created_at,
        )


class ListingDetail(ListingSummary):
    """Single-listing view, personalised for the caller when identified."""

    description: str = ""
    seller: str | None = None
    is_liked: bool = False
    is_seller: bool = False

    @classmethod
    def for_viewer(cls, listing: Listing, user_id: str | None) -> "ListingDetail":
        summary = ListingSummary.from_listing(listing)
        return cls(
            **summary.model_dump(),
            description=listing.description,
            seller=listing.seller,
            is_liked=user_id is not None and user_id in listing.liked_by,
            is_seller=user_id is not None and user_id == listing.seller,
        )


class UserHistory(BaseModel):
    """Most-recent-first engagement history stored on a user document."""

    viewed_history: list[str] = Field(default_factory=list)
    shared_history: list[str] = Field(default_factory=list)

    @field_validator("viewed_history", "shared_history", mode="before")
    @classmethod
    def _truncate(cls, v):
        if v is None:
            return []
        return list(v)[:HISTORY_LIMIT]
