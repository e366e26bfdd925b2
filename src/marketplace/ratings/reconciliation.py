"""Rating reconciliation — finds and repairs drift between stored snapshots
and the counted reviews they should describe.

Drift can only appear when a recompute failed after a review write was
committed, or when data was changed outside the lifecycle manager.
"""

from dataclasses import dataclass, field

import structlog
from protean.utils.globals import current_domain

from marketplace.product.product import Product
from marketplace.ratings.recompute import AggregateRecomputer, clear_stale, flag_stale, stale_product_ids
from marketplace.review.errors import RecomputeError

logger = structlog.get_logger(__name__)

PAGE_SIZE = 500


@dataclass
class ProductDrift:
    product_id: str
    fields: list[str]
    stored: dict
    expected: dict
    repaired: bool = False


@dataclass
class ReconciliationReport:
    checked: int = 0
    drifted: list[ProductDrift] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def repaired(self) -> list[str]:
        return [drift.product_id for drift in self.drifted if drift.repaired]


def _all_product_ids() -> list[str]:
    dao = current_domain.repository_for(Product)._dao
    ids: list[str] = []
    offset = 0
    while True:
        page = dao.query.order_by("id").offset(offset).limit(PAGE_SIZE).all()
        ids.extend(str(product.id) for product in page.items)
        if len(page.items) < PAGE_SIZE:
            return ids
        offset += PAGE_SIZE


class RatingReconciler:
    def __init__(self, recomputer: AggregateRecomputer | None = None):
        self.recomputer = recomputer or AggregateRecomputer()

    def check(self, product_id) -> ProductDrift | None:
        product = current_domain.repository_for(Product).get(str(product_id))
        stored = product.rating_snapshot()
        expected = self.recomputer.compute(product_id).as_dict()

        fields = [name for name, value in expected.items() if stored.get(name) != value]
        if not fields:
            return None
        return ProductDrift(product_id=str(product_id), fields=fields, stored=stored, expected=expected)

    def run(self, product_ids=None, fix: bool = False) -> ReconciliationReport:
        """Compare every (or the given) product's snapshot with a fresh computation.

        With ``fix`` the drifted products are recomputed; stale flags of
        products found consistent are cleared.
        """
        if product_ids is None:
            product_ids = _all_product_ids()
        stale = set(stale_product_ids())

        report = ReconciliationReport()
        for product_id in product_ids:
            product_id = str(product_id)
            report.checked += 1
            drift = self.check(product_id)

            if drift is None:
                if fix and product_id in stale:
                    clear_stale(product_id)
                continue

            report.drifted.append(drift)
            logger.warning("product_rating_drift", product_id=product_id, fields=drift.fields)

            if not fix:
                continue
            try:
                self.recomputer.recompute(product_id)
                drift.repaired = True
            except RecomputeError as exc:
                logger.error("product_rating_repair_failed", product_id=product_id, error=str(exc))
                flag_stale(product_id, reason=str(exc))
                report.failed.append(product_id)

        logger.info(
            "rating_reconciliation_finished",
            checked=report.checked,
            drifted=len(report.drifted),
            repaired=len(report.repaired),
            failed=len(report.failed),
        )
        return report
