"""Management CLI for onboarding data.

Usage:
    python -m sellerboard.cli init-db            # Create tables (dev; prod uses Alembic)
    python -m sellerboard.cli list-onboarding    # Show records with progress/state
"""

import sys

from sqlalchemy import create_engine, select

from sellerboard.config import settings
from sellerboard.database import Base
from sellerboard.models.seller_onboarding import SellerOnboarding
from sellerboard.services.state_machine import state_for_progress


def init_db():
    """Create every table on Base.metadata that doesn't exist yet."""
    engine = create_engine(settings.database_url_sync)
    Base.metadata.create_all(engine)
    print(f"Created tables: {', '.join(sorted(Base.metadata.tables))}")


def list_onboarding(limit: int = 100):
    engine = create_engine(settings.database_url_sync)
    with engine.connect() as conn:
        rows = conn.execute(
            select(
                SellerOnboarding.id,
                SellerOnboarding.shop_name,
                SellerOnboarding.progress,
                SellerOnboarding.skipped_optional,
            )
            .order_by(SellerOnboarding.created_at.desc())
            .limit(limit)
        ).all()

    for record_id, shop_name, progress, skipped in rows:
        state = state_for_progress(progress).value
        note = " (optional fields skipped)" if skipped else ""
        print(f"  {record_id}  {progress:>3}%  {state:<20} {shop_name}{note}")
    print(f"\n{len(rows)} record(s)")


if __name__ == "__main__":
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    if cmd == "init-db":
        init_db()
    elif cmd == "list-onboarding":
        list_onboarding()
    else:
        print("Usage: python -m sellerboard.cli [init-db|list-onboarding]")
