"""Pydantic request/response schemas for the Marketplace reviews API.

These are separate from Protean commands (anti-corruption pattern).
The API layer is the external contract; commands are internal domain concepts.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class VerificationSchema(BaseModel):
    method: str = "none"
    email: str | None = None
    profile_url: str | None = None
    invite_code: str | None = None
    vendor_id: str | None = None
    screenshot_url: str | None = None
    verified_at: datetime | None = None


class AttachmentSchema(BaseModel):
    file_name: str = Field(max_length=255)
    file_url: str = Field(max_length=500)
    file_type: str | None = Field(default=None, max_length=50)
    file_size: int = Field(default=0, ge=0)


class RegisterProductRequest(BaseModel):
    name: str = Field(max_length=255)
    vendor_id: str | None = None
    product_id: str | None = None


class SubmitReviewRequest(BaseModel):
    product_id: str
    reviewer_id: str
    overall_rating: int
    title: str = Field(max_length=200)
    content: str = Field(max_length=5000)
    sub_ratings: dict[str, int] | None = None
    verification: VerificationSchema | None = None
    attachments: list[AttachmentSchema] | None = None
    review_source: str | None = None


class UpdateReviewRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, max_length=200)
    content: str | None = Field(default=None, max_length=5000)
    overall_rating: int | None = None
    sub_ratings: dict[str, int] | None = None
    verification: VerificationSchema | None = None
    attachments: list[AttachmentSchema] | None = None


class SetStatusRequest(BaseModel):
    status: str
    note: str | None = None


class HelpfulVoteRequest(BaseModel):
    voter_id: str


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class ProductIdResponse(BaseModel):
    product_id: str


class ReviewResponse(BaseModel):
    review_id: str
    product_id: str
    reviewer_id: str
    title: str
    content: str
    overall_rating: int
    sub_ratings: dict[str, int]
    verification: dict
    status: str
    moderation_note: str | None = None
    is_deleted: bool
    deleted_at: datetime | None = None
    deleted_by: str | None = None
    keywords: list[str]
    mentions: list[str]
    helpful_count: int
    total_replies: int
    attachments: list[dict]
    submitted_at: datetime | None = None
    published_at: datetime | None = None
    updated_at: datetime | None = None


class ReviewListResponse(BaseModel):
    items: list[ReviewResponse]
    total: int
    page: int
    limit: int


class HelpfulCountResponse(BaseModel):
    helpful_count: int


class PopularMentionSchema(BaseModel):
    mention: str
    count: int
    avg_rating: float


class ReviewStatsResponse(BaseModel):
    product_id: str
    avg_rating: float
    total_reviews: int
    rating_distribution: dict[str, int]
    avg_sub_ratings: dict[str, float | None]
    popular_mentions: list[PopularMentionSchema]
    ratings_updated_at: datetime | None = None


class StatusResponse(BaseModel):
    status: str = "ok"
