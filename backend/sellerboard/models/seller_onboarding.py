"""Seller onboarding record.

One row per seller going through the four-step wizard. Columns are
grouped by the step that writes them; `progress` says how many steps
have been committed (25, 50, 75, 100).

Conditional columns (inventory flags, shipping costs, step 4 extras)
are nullable: NULL means "not applicable for the branch the seller
chose", not "unanswered".
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from sellerboard.database import Base


class SellerOnboarding(Base):
    __tablename__ = "seller_onboarding"
    __table_args__ = (
        CheckConstraint("progress IN (25, 50, 75, 100)", name="ck_seller_onboarding_progress"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    # Step 1: shop info
    shop_name: Mapped[str] = mapped_column(String(255), nullable=False)
    country: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[str] = mapped_column(String(100), nullable=False)
    postal_code: Mapped[str] = mapped_column(String(20), nullable=False)
    address1: Mapped[str] = mapped_column(String(255), nullable=False)
    address2: Mapped[str | None] = mapped_column(String(255))
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str] = mapped_column(String(30), nullable=False)
    logo_path: Mapped[str | None] = mapped_column(String(500))
    aspect_ratio: Mapped[str | None] = mapped_column(String(10))

    # Step 2: inventory
    has_inventory: Mapped[bool | None] = mapped_column(Boolean)
    inventory_file: Mapped[str | None] = mapped_column(String(500))
    include_drafts: Mapped[bool | None] = mapped_column(Boolean)
    made_to_order: Mapped[bool | None] = mapped_column(Boolean)
    integration_access: Mapped[bool | None] = mapped_column(Boolean)

    # Step 3: shipping
    shipping_method: Mapped[str | None] = mapped_column(String(20))
    fixed_cost: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    free_threshold: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    package_size: Mapped[str | None] = mapped_column(String(10))
    offer_pickup: Mapped[bool | None] = mapped_column(Boolean)
    return_days: Mapped[int | None] = mapped_column(Integer)
    cancel_days: Mapped[int | None] = mapped_column(Integer)
    call_scheduled: Mapped[bool | None] = mapped_column(Boolean)

    # Step 4: shop details
    description: Mapped[str | None] = mapped_column(Text)
    badges: Mapped[list | None] = mapped_column(JSON)
    facebook: Mapped[str | None] = mapped_column(String(500))
    instagram: Mapped[str | None] = mapped_column(String(500))
    pinterest: Mapped[str | None] = mapped_column(String(500))
    skipped_optional: Mapped[bool] = mapped_column(Boolean, default=False)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime)

    progress: Mapped[int] = mapped_column(Integer, default=25, nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
