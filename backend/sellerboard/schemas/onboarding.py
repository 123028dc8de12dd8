"""Pydantic schemas for the four-step seller onboarding wizard.

Step forms are validated from raw `multipart/form-data` fields, so the
field aliases are the HTML input names (`postal`, `shipping`, `returns`,
...) while the attribute names match the `seller_onboarding` columns.

Form conventions handled here:
  - blank inputs count as absent (so defaults apply)
  - checkboxes are true when present, whatever their value
  - fields outside the active branch (`branch_rules`) are ignored
    before type validation, so a stale hidden input can't fail a step
"""

import enum
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, ClassVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)

from sellerboard.schemas.validators import clean_text, validate_phone, validate_url
from sellerboard.services.state_machine import OnboardingState


# ── Option sets ─────────────────────────────────────────────

class AspectRatio(str, enum.Enum):
    SQUARE = "1:1"
    FREE = "free"


class ShippingMethod(str, enum.Enum):
    FREE = "free"
    FIXED = "fixed"
    DISTANCE = "distance"
    PICKUP = "pickup"
    CALL = "call"


class PackageSize(str, enum.Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class Badge(str, enum.Enum):
    MINORITY_OWNED = "Minority Owned"
    VETERAN_OWNED = "Veteran Owned"
    FAMILY_OWNED = "Family Owned"
    B_CORP_CERTIFIED = "B-Corp Certified"
    NEURODIVERGENT_OWNED = "Neurodivergent Owned"
    LGBTQ_OWNED = "LGBTQ+ Owned"
    ECO_SMART = "Eco Smart"
    IN_STORE = "In-Store"


class FinishAction(str, enum.Enum):
    COMPLETE = "complete"
    SKIP = "skip"


# ── Branch table ────────────────────────────────────────────

@dataclass(frozen=True)
class BranchRule:
    """`field` only applies while `selector` holds one of `active_when`.

    Outside the branch the field is stored as NULL. Inside it, a
    `required` field must be present.
    """

    field: str
    selector: str
    active_when: frozenset
    required: bool = False

    def is_active(self, selector_value: Any) -> bool:
        if isinstance(selector_value, enum.Enum):
            selector_value = selector_value.value
        return selector_value in self.active_when


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return all(_is_blank(v) for v in value)
    return False


class StepForm(BaseModel):
    """Base for step forms: blank stripping, checkboxes, branch pruning."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        use_enum_values=True,
        extra="ignore",
    )

    branch_rules: ClassVar[tuple[BranchRule, ...]] = ()
    checkbox_fields: ClassVar[frozenset[str]] = frozenset()

    @classmethod
    def prepare_form(cls, data: dict) -> dict:
        """Hook for step-specific rewriting of the raw form."""
        return data

    @model_validator(mode="before")
    @classmethod
    def _normalize_form(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            data = cls.prepare_form(dict(data))
            return {k: v for k, v in data.items() if not _is_blank(v)}
        return data

    @field_validator("*", mode="before")
    @classmethod
    def _apply_form_conventions(cls, value: Any, info: ValidationInfo) -> Any:
        rule = cls.rule_for(info.field_name)
        if rule is not None:
            # Selector missing from info.data means it failed validation;
            # that error is reported on its own.
            if rule.selector not in info.data or not rule.is_active(info.data[rule.selector]):
                return None
        if info.field_name in cls.checkbox_fields:
            return True
        return value

    @classmethod
    def rule_for(cls, field_name: str) -> BranchRule | None:
        for rule in cls.branch_rules:
            if rule.field == field_name:
                return rule
        return None

    @classmethod
    def form_name(cls, field_name: str) -> str:
        """HTML input name for a column (used in error reports)."""
        info = cls.model_fields.get(field_name)
        if info is not None and info.alias:
            return info.alias
        return field_name


# ── Step 1: Shop information ────────────────────────────────

class ShopInfoForm(StepForm):
    shop_name: str = Field(max_length=255)
    country: str = Field(max_length=100)
    state: str = Field(max_length=100)
    postal_code: str = Field(alias="postal", max_length=20)
    address1: str = Field(max_length=255)
    address2: str | None = Field(default=None, max_length=255)
    city: str = Field(max_length=100)
    phone: str = Field(max_length=30)
    aspect_ratio: AspectRatio | None = Field(default=None, alias="aspect")

    @field_validator("phone")
    @classmethod
    def _phone_shape(cls, v: str) -> str:
        return validate_phone(v)


# ── Step 2: Inventory ───────────────────────────────────────

_HAS_INVENTORY = frozenset({True})


class InventoryForm(StepForm):
    has_inventory: bool
    include_drafts: bool | None = False
    made_to_order: bool | None = False
    integration_access: bool | None = Field(default=False, alias="integration")

    branch_rules: ClassVar[tuple[BranchRule, ...]] = (
        BranchRule("inventory_file", "has_inventory", _HAS_INVENTORY),
        BranchRule("include_drafts", "has_inventory", _HAS_INVENTORY),
        BranchRule("made_to_order", "has_inventory", _HAS_INVENTORY),
        BranchRule("integration_access", "has_inventory", _HAS_INVENTORY),
    )
    checkbox_fields: ClassVar[frozenset[str]] = frozenset(
        {"include_drafts", "made_to_order", "integration_access"}
    )

    @field_validator("has_inventory", mode="before")
    @classmethod
    def _yes_no(cls, v: Any) -> Any:
        if isinstance(v, str):
            answer = v.strip().lower()
            if answer == "yes":
                return True
            if answer == "no":
                return False
            raise ValueError("Answer must be 'yes' or 'no'")
        return v


# ── Step 3: Shipping ────────────────────────────────────────

class ShippingForm(StepForm):
    shipping_method: ShippingMethod = Field(alias="shipping")
    fixed_cost: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    free_threshold: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    package_size: PackageSize | None = None
    offer_pickup: bool = Field(default=False, alias="pickup")
    return_days: int = Field(default=12, ge=0, le=365, alias="returns")
    cancel_days: int = Field(default=3, ge=0, le=365, alias="cancellation")
    call_scheduled: bool | None = False

    branch_rules: ClassVar[tuple[BranchRule, ...]] = (
        BranchRule("fixed_cost", "shipping_method", frozenset({ShippingMethod.FIXED.value}), required=True),
        BranchRule(
            "free_threshold",
            "shipping_method",
            frozenset({ShippingMethod.FIXED.value, ShippingMethod.DISTANCE.value}),
        ),
        BranchRule("package_size", "shipping_method", frozenset({ShippingMethod.DISTANCE.value}), required=True),
        BranchRule("call_scheduled", "shipping_method", frozenset({ShippingMethod.CALL.value})),
    )
    checkbox_fields: ClassVar[frozenset[str]] = frozenset({"offer_pickup", "call_scheduled"})


# ── Step 4: Shop details ────────────────────────────────────

_ON_COMPLETE = frozenset({FinishAction.COMPLETE.value})


class DetailsForm(StepForm):
    action: FinishAction = FinishAction.COMPLETE
    description: str | None = None
    badges: list[Badge] | None = None
    facebook: str | None = Field(default=None, max_length=500)
    instagram: str | None = Field(default=None, max_length=500)
    pinterest: str | None = Field(default=None, max_length=500)

    branch_rules: ClassVar[tuple[BranchRule, ...]] = (
        BranchRule("description", "action", _ON_COMPLETE),
        BranchRule("badges", "action", _ON_COMPLETE),
        BranchRule("facebook", "action", _ON_COMPLETE),
        BranchRule("instagram", "action", _ON_COMPLETE),
        BranchRule("pinterest", "action", _ON_COMPLETE),
    )

    @classmethod
    def prepare_form(cls, data: dict) -> dict:
        # Two submit buttons named "complete" and "skip"; an explicit
        # `action` field wins when both are present.
        if _is_blank(data.get("action")):
            data["action"] = FinishAction.SKIP.value if "skip" in data else FinishAction.COMPLETE.value
        data.pop("skip", None)
        data.pop("complete", None)
        if isinstance(data.get("badges"), str):
            data["badges"] = [data["badges"]]
        return data

    @field_validator("description")
    @classmethod
    def _clean_description(cls, v: str | None) -> str | None:
        return clean_text(v, max_length=5000) if v is not None else None

    @field_validator("badges")
    @classmethod
    def _dedupe_badges(cls, v: list | None) -> list | None:
        if v is None:
            return None
        return list(dict.fromkeys(v))

    @field_validator("facebook", "instagram", "pinterest")
    @classmethod
    def _social_url(cls, v: str | None) -> str | None:
        return validate_url(v) if v is not None else None


# ── Responses ───────────────────────────────────────────────

class StepResult(BaseModel):
    record_id: str
    step: int
    progress: int
    state: OnboardingState
    next_step: int | None
    completed: bool = False
    onboarding_token: str | None = None


class StepContext(BaseModel):
    """Everything a form renderer needs for one step's entry point."""
    step: int
    title: str
    progress: int
    state: OnboardingState
    record_id: str | None = None
    options: dict[str, list[str]] = {}
    defaults: dict[str, Any] = {}


class OnboardingRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    shop_name: str
    country: str
    state: str
    postal_code: str
    address1: str
    address2: str | None = None
    city: str
    phone: str
    logo_path: str | None = None
    aspect_ratio: str | None = None

    has_inventory: bool | None = None
    inventory_file: str | None = None
    include_drafts: bool | None = None
    made_to_order: bool | None = None
    integration_access: bool | None = None

    shipping_method: str | None = None
    fixed_cost: Decimal | None = None
    free_threshold: Decimal | None = None
    package_size: str | None = None
    offer_pickup: bool | None = None
    return_days: int | None = None
    cancel_days: int | None = None
    call_scheduled: bool | None = None

    description: str | None = None
    badges: list[str] | None = None
    facebook: str | None = None
    instagram: str | None = None
    pinterest: str | None = None
    skipped_optional: bool = False
    completed: bool = False
    submitted_at: datetime | None = None

    progress: int


class OnboardingProgress(BaseModel):
    state: OnboardingState
    progress: int
    next_step: int | None
    record: OnboardingRecordOut
