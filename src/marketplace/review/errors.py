"""Typed errors raised by the review lifecycle.

All errors carry a Protean ``messages`` dict so transport layers can map them
to responses without parsing strings. ``ValidationError`` and
``ObjectNotFoundError`` are used as-is from Protean for malformed input and
unknown ids.
"""

from protean.exceptions import ProteanException, ValidationError


class DuplicateReviewError(ValidationError):
    """The reviewer already has an active review for this product."""


class RestoreConflictError(ValidationError):
    """Another active review occupies the reviewer/product slot."""


class VoteError(ValidationError):
    """A helpful vote cannot be recorded or withdrawn."""


class RecomputeError(ProteanException):
    """Writing a product's rating snapshot failed.

    Never surfaced from lifecycle operations: the review write has already
    been committed, so the product is flagged for reconciliation instead.
    """
