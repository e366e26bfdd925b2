from protean.domain import Domain
from sqlalchemy import create_engine, text

# Storage-level equivalent of the one-active-review-per-pair rule. Soft-deleted
# rows fall outside the partial index, so historical reviews may pile up.
ACTIVE_REVIEW_INDEX = (
    "CREATE UNIQUE INDEX IF NOT EXISTS uq_review_active_reviewer_product "
    "ON review (reviewer_id, product_id) WHERE is_deleted = false"
)


def setup_db(domain: Domain):
    """Setup database schema"""
    with domain.domain_context():
        for _, provider in domain.providers.items():
            if provider.conn_info["provider"] in ("sqlite", "postgresql"):
                engine = create_engine(provider.conn_info["database_uri"])

                # Ensure live entities are loaded and registered with SQLAlchemy
                #   We do this by accessing the _dao attribute of the repository, forcing
                #   the entity to be loaded and registered with SQLAlchemy.
                for _, aggregate_record in domain.registry.aggregates.items():
                    if aggregate_record.cls.meta_.provider == provider.name:
                        domain.repository_for(aggregate_record.cls)._dao  # noqa: B018

                for _, entity_record in domain.registry.entities.items():
                    if entity_record.cls.meta_.provider == provider.name:
                        domain.repository_for(entity_record.cls)._dao  # noqa: B018

                for _, entity_record in domain.registry.projections.items():
                    if entity_record.cls.meta_.provider == provider.name:
                        domain.repository_for(entity_record.cls)._dao  # noqa: B018

                # Create RDBMS Tables
                provider._metadata.create_all(engine)

                with engine.begin() as conn:
                    conn.execute(text(ACTIVE_REVIEW_INDEX))


def drop_db(domain: Domain):
    """Drop database schema"""
    with domain.domain_context():
        for _, provider in domain.providers.items():
            if provider.conn_info["provider"] in ("sqlite", "postgresql"):
                engine = create_engine(provider.conn_info["database_uri"])

                # Destroy databases after running tests
                provider._metadata.drop_all(engine)
