"""FastAPI routes for the Marketplace reviews context.

Each route translates between Pydantic schemas (external contract) and the
ReviewLifecycleManager. Typed domain errors become HTTP responses through
the exception handlers registered by ``register_review_exception_handlers``.
"""

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers
from protean.utils.globals import current_domain

from marketplace.api.schemas import (
    HelpfulCountResponse,
    HelpfulVoteRequest,
    ProductIdResponse,
    RegisterProductRequest,
    ReviewListResponse,
    ReviewResponse,
    ReviewStatsResponse,
    SetStatusRequest,
    StatusResponse,
    SubmitReviewRequest,
    UpdateReviewRequest,
)
from marketplace.product.registration import RegisterProduct
from marketplace.ratings.queries import get_popular_mentions, get_review_stats
from marketplace.review.errors import DuplicateReviewError, RestoreConflictError
from marketplace.review.lifecycle import ReviewLifecycleManager

review_router = APIRouter(prefix="/reviews", tags=["reviews"])
product_router = APIRouter(prefix="/products", tags=["products"])

manager = ReviewLifecycleManager()


def _review_response(review) -> ReviewResponse:
    return ReviewResponse(
        review_id=str(review.id),
        product_id=str(review.product_id),
        reviewer_id=str(review.reviewer_id),
        title=review.title,
        content=review.content,
        overall_rating=review.overall_rating,
        sub_ratings=review.sub_rating_map,
        verification=review.verification.to_dict() if review.verification else {"method": "none"},
        status=review.status,
        moderation_note=review.moderation_note,
        is_deleted=review.is_deleted,
        deleted_at=review.deleted_at,
        deleted_by=str(review.deleted_by) if review.deleted_by else None,
        keywords=review.keyword_list,
        mentions=review.mention_list,
        helpful_count=review.helpful_count,
        total_replies=review.total_replies,
        attachments=[
            {
                "file_name": a.file_name,
                "file_url": a.file_url,
                "file_type": a.file_type,
                "file_size": a.file_size,
            }
            for a in review.attachments
        ],
        submitted_at=review.submitted_at,
        published_at=review.published_at,
        updated_at=review.updated_at,
    )


def _conflict(request: Request, exc) -> JSONResponse:
    return JSONResponse(status_code=409, content={"error": exc.messages})


def register_review_exception_handlers(app: FastAPI) -> None:
    """400 for validation, 404 for unknown ids, 409 for slot conflicts."""
    register_exception_handlers(app)
    app.add_exception_handler(DuplicateReviewError, _conflict)
    app.add_exception_handler(RestoreConflictError, _conflict)


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------
@product_router.post("", status_code=201, response_model=ProductIdResponse)
async def register_product(body: RegisterProductRequest) -> ProductIdResponse:
    """Register a product that can receive reviews."""
    command = RegisterProduct(product_id=body.product_id, name=body.name, vendor_id=body.vendor_id)
    product_id = current_domain.process(command, asynchronous=False)
    return ProductIdResponse(product_id=product_id)


@product_router.get("/{product_id}/stats", response_model=ReviewStatsResponse)
async def review_stats(product_id: str) -> ReviewStatsResponse:
    return ReviewStatsResponse(**get_review_stats(product_id))


@product_router.get("/{product_id}/popular-mentions")
async def popular_mentions(product_id: str, limit: int = 10) -> dict:
    return {"product_id": product_id, "popular_mentions": get_popular_mentions(product_id, limit=limit)}


@product_router.get("/{product_id}/reviews", response_model=ReviewListResponse)
async def product_reviews(
    product_id: str,
    mention: str | None = None,
    keyword: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> ReviewListResponse:
    """Published reviews of a product, newest first."""
    result = manager.list_product_reviews(product_id, mention=mention, keyword=keyword, page=page, limit=limit)
    return ReviewListResponse(
        items=[_review_response(review) for review in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
    )


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------
@review_router.post("", status_code=201, response_model=ReviewResponse)
async def create_review(body: SubmitReviewRequest) -> ReviewResponse:
    """Submit a new product review."""
    review = manager.create_review(
        reviewer_id=body.reviewer_id,
        product_id=body.product_id,
        overall_rating=body.overall_rating,
        title=body.title,
        content=body.content,
        sub_ratings=body.sub_ratings,
        verification=body.verification.model_dump(exclude_none=True) if body.verification else None,
        attachments=[a.model_dump() for a in body.attachments] if body.attachments else None,
        review_source=body.review_source,
    )
    return _review_response(review)


@review_router.get("/{review_id}", response_model=ReviewResponse)
async def get_review(review_id: str) -> ReviewResponse:
    return _review_response(manager.get_review(review_id))


@review_router.patch("/{review_id}", response_model=ReviewResponse)
async def update_review(review_id: str, body: UpdateReviewRequest) -> ReviewResponse:
    """Edit review content and ratings."""
    patch = body.model_dump(exclude_unset=True)
    if patch.get("verification"):
        patch["verification"] = {k: v for k, v in patch["verification"].items() if v is not None}
    review = manager.update_review(review_id, patch)
    return _review_response(review)


@review_router.put("/{review_id}/status", response_model=ReviewResponse)
async def set_review_status(review_id: str, body: SetStatusRequest) -> ReviewResponse:
    """Apply a moderation decision."""
    return _review_response(manager.set_status(review_id, body.status, note=body.note))


@review_router.delete("/{review_id}", response_model=StatusResponse)
async def delete_review(review_id: str, deleted_by: str) -> StatusResponse:
    manager.soft_delete(review_id, deleted_by)
    return StatusResponse()


@review_router.post("/{review_id}/restore", response_model=ReviewResponse)
async def restore_review(review_id: str) -> ReviewResponse:
    return _review_response(manager.restore(review_id))


@review_router.post("/{review_id}/votes", status_code=201, response_model=HelpfulCountResponse)
async def vote_helpful(review_id: str, body: HelpfulVoteRequest) -> HelpfulCountResponse:
    return HelpfulCountResponse(helpful_count=manager.vote_helpful(review_id, body.voter_id))


@review_router.delete("/{review_id}/votes/{voter_id}", response_model=HelpfulCountResponse)
async def withdraw_helpful_vote(review_id: str, voter_id: str) -> HelpfulCountResponse:
    return HelpfulCountResponse(helpful_count=manager.withdraw_helpful_vote(review_id, voter_id))
