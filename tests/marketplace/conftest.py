import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture

from marketplace.notifications import get_notifier, reset_notifier
from marketplace.product.registration import RegisterProduct
from marketplace.ratings.recompute import AggregateRecomputer
from marketplace.review.lifecycle import ReviewLifecycleManager


@pytest.fixture(scope="session")
def marketplace_bed():
    from marketplace.domain import marketplace

    bed = DomainFixture(marketplace)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(marketplace_bed):
    with marketplace_bed.domain_context():
        yield

        # Clear all databases and drain the event store
        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


@pytest.fixture(autouse=True)
def notifier():
    """Fresh in-memory notification adapter for every test."""
    reset_notifier()
    adapter = get_notifier()
    yield adapter
    reset_notifier()


class CountingRecomputer(AggregateRecomputer):
    """Recomputer that remembers which products it was asked to recompute."""

    def __init__(self):
        super().__init__()
        self.calls: list[str] = []

    def recompute(self, product_id):
        self.calls.append(str(product_id))
        return super().recompute(product_id)


@pytest.fixture()
def recomputer():
    return CountingRecomputer()


@pytest.fixture()
def manager(recomputer):
    return ReviewLifecycleManager(recomputer=recomputer, initial_status="pending")


@pytest.fixture()
def register_product():
    def _register(product_id=None, name="Acme CRM", vendor_id=None):
        return current_domain.process(
            RegisterProduct(product_id=product_id, name=name, vendor_id=vendor_id),
            asynchronous=False,
        )

    return _register
