"""Marketplace bounded context — product reviews and rating consistency.

Handles the review lifecycle (submission, editing, moderation, soft-delete,
restore, purge), keyword/mention extraction, and the per-product rating
snapshot that listing and search components read.
"""

from protean.domain import Domain

from marketplace.utils.logging import configure_logging, get_logger

# Configure logging for the application
configure_logging(log_file_prefix="marketplace")

# Get logger for this module
logger = get_logger(__name__)

# Domain Composition Root
marketplace = Domain(name="marketplace")
