"""Seller onboarding: one generic step controller, four step definitions.

Each submission runs the same pipeline:

  1. guard      → resolve the token; steps 2-4 need an in-progress record
                  at the right progress, otherwise NavigationRedirect
  2. normalize  → validate the raw form with the step's StepForm
  3. branches   → evaluate the step's branch table: out-of-branch fields
                  become NULL, missing required in-branch fields fail
  4. upload     → store the step's optional file, keep only its reference
  5. commit     → one INSERT (new seller, committed once its token exists)
                  or one guarded UPDATE
  6. identity   → mint the token at step 1, clear it at step 4

Nothing is written before step 5, so a validation failure never leaves a
partial commit behind.
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from sellerboard.middleware.exceptions import (
    NavigationRedirect,
    OnboardingValidationError,
    PersistenceError,
    UploadError,
)
from sellerboard.schemas.onboarding import (
    AspectRatio,
    Badge,
    DetailsForm,
    FinishAction,
    InventoryForm,
    OnboardingProgress,
    OnboardingRecordOut,
    PackageSize,
    ShippingForm,
    ShippingMethod,
    ShopInfoForm,
    StepContext,
    StepForm,
    StepResult,
)
from sellerboard.services.record_store import RecordStore
from sellerboard.services.session_identity import SessionIdentityHolder
from sellerboard.services.state_machine import (
    STEP_PROGRESS,
    STEP_TITLES,
    TOTAL_STEPS,
    allowed_progress,
    awaited_step,
    can_enter,
    next_step,
    redirect_target,
    state_for_progress,
)
from sellerboard.services.uploads import IncomingFile, UploadStore

logger = logging.getLogger("sellerboard.onboarding")


@dataclass(frozen=True)
class UploadSlot:
    """Optional file accompanying a step; `field` is both input and column name."""
    field: str
    category: str


@dataclass(frozen=True)
class StepDefinition:
    number: int
    form: type[StepForm]
    upload: UploadSlot | None = None
    finalize: Callable[[dict], dict] | None = None
    options: dict[str, list[str]] = field(default_factory=dict)
    defaults: dict[str, Any] = field(default_factory=dict)

    @property
    def progress(self) -> int:
        return STEP_PROGRESS[self.number]

    @property
    def title(self) -> str:
        return STEP_TITLES[self.number]


def _finish_details(fields: dict) -> dict:
    """Step 4: both actions finish the wizard; skip just says so."""
    action = fields.pop("action", FinishAction.COMPLETE.value)
    if isinstance(action, FinishAction):
        action = action.value
    fields["skipped_optional"] = action == FinishAction.SKIP.value
    fields["completed"] = True
    fields["submitted_at"] = datetime.utcnow()
    return fields


def _values(options: type) -> list[str]:
    return [o.value for o in options]


STEPS: dict[int, StepDefinition] = {
    1: StepDefinition(
        number=1,
        form=ShopInfoForm,
        upload=UploadSlot(field="logo_path", category="logos"),
        options={"aspect": _values(AspectRatio)},
    ),
    2: StepDefinition(
        number=2,
        form=InventoryForm,
        upload=UploadSlot(field="inventory_file", category="inventory"),
        options={"has_inventory": ["yes", "no"]},
    ),
    3: StepDefinition(
        number=3,
        form=ShippingForm,
        options={
            "shipping": _values(ShippingMethod),
            "package_size": _values(PackageSize),
        },
        defaults={"returns": 12, "cancellation": 3},
    ),
    4: StepDefinition(
        number=4,
        form=DetailsForm,
        finalize=_finish_details,
        options={
            "badges": _values(Badge),
            "action": _values(FinishAction),
        },
    ),
}

# Form input name for each step's upload (HTML <input type="file" name=...>)
UPLOAD_INPUTS: dict[int, str] = {1: "logo", 2: "inventory_file"}


class StepController:
    """Runs wizard steps against a record store, session holder and upload store."""

    def __init__(
        self,
        records: RecordStore,
        sessions: SessionIdentityHolder,
        uploads: UploadStore,
    ):
        self.records = records
        self.sessions = sessions
        self.uploads = uploads

    # ── Guard ────────────────────────────────────────────────

    async def _resolve(self, token: str | None) -> tuple[str | None, int | None]:
        """Return (record_id, progress) for an in-progress record, else (None, None).

        A token pointing at a deleted or already finished record counts as
        no identity at all.
        """
        record_id = await self.sessions.get(token)
        if record_id is None:
            return None, None
        progress = await self.records.get_progress(record_id)
        if progress is None or progress >= STEP_PROGRESS[TOTAL_STEPS]:
            return None, None
        return record_id, progress

    async def _guard(self, step: int, token: str | None) -> tuple[str | None, int | None]:
        record_id, progress = await self._resolve(token)
        if record_id is None:
            if step != 1:
                raise NavigationRedirect(1, "No onboarding in progress")
            return None, None
        if not can_enter(step, progress):
            raise NavigationRedirect(
                redirect_target(progress),
                f"Step {step} is not available at {progress}% progress",
            )
        return record_id, progress

    # ── Normalize + branches ────────────────────────────────

    @staticmethod
    def _validate(definition: StepDefinition, form: Mapping[str, Any]) -> dict:
        try:
            parsed = definition.form.model_validate(dict(form))
        except ValidationError as e:
            fields = [str(err["loc"][0]) for err in e.errors() if err["loc"]]
            raise OnboardingValidationError(fields or ["form"]) from e
        return parsed.model_dump()

    @staticmethod
    def _apply_branches(definition: StepDefinition, data: dict) -> dict:
        missing = []
        for rule in definition.form.branch_rules:
            if rule.field not in data:
                continue  # upload slots are resolved separately
            if not rule.is_active(data.get(rule.selector)):
                data[rule.field] = None
            elif rule.required and data[rule.field] is None:
                missing.append(definition.form.form_name(rule.field))
        if missing:
            raise OnboardingValidationError(
                missing, f"Required for this option: {', '.join(missing)}"
            )
        return data

    def _upload_active(self, definition: StepDefinition, data: dict) -> bool:
        rule = definition.form.rule_for(definition.upload.field)
        return rule is None or rule.is_active(data.get(rule.selector))

    async def _store_upload(
        self,
        definition: StepDefinition,
        data: dict,
        upload: IncomingFile | None,
    ) -> str | None:
        if upload is None or not upload.filename or not self._upload_active(definition, data):
            return None
        try:
            return await self.uploads.store(
                definition.upload.category, upload.filename, upload.data
            )
        except UploadError as e:
            # Uploads are optional: carry on without the reference
            logger.warning("Upload for step %d discarded: %s", definition.number, e)
            return None

    # ── Submit ───────────────────────────────────────────────

    async def submit(
        self,
        step: int,
        form: Mapping[str, Any],
        token: str | None = None,
        upload: IncomingFile | None = None,
    ) -> StepResult:
        """Validate and commit one step. Raises NavigationRedirect,
        OnboardingValidationError or PersistenceError."""
        definition = STEPS[step]
        record_id, _ = await self._guard(step, token)

        fields = self._apply_branches(definition, self._validate(definition, form))
        if definition.upload is not None:
            fields[definition.upload.field] = await self._store_upload(definition, fields, upload)
        if definition.finalize is not None:
            fields = definition.finalize(fields)

        progress = definition.progress
        if record_id is None:
            record_id = await self.records.create_record(fields, progress)
            try:
                token = await self.sessions.set(record_id)
            except PersistenceError:
                await self.records.rollback()
                raise
            await self.records.commit()
            logger.info("Onboarding record %s created", record_id)
        else:
            written = await self.records.update_record(
                record_id, fields, progress, allowed_progress(step)
            )
            if not written:
                # Another request moved the record on in the meantime
                current = await self.records.get_progress(record_id)
                raise NavigationRedirect(
                    redirect_target(current),
                    f"Step {step} no longer applies to record {record_id}",
                )

        completed = step == TOTAL_STEPS
        if completed:
            try:
                await self.sessions.clear(token)
            except PersistenceError:
                # The record is complete, which already retires the token
                logger.warning("Token for completed record %s left to expire", record_id)
            token = None

        logger.info("Onboarding %s committed step %d (progress %d%%)", record_id, step, progress)
        return StepResult(
            record_id=record_id,
            step=step,
            progress=progress,
            state=state_for_progress(progress),
            next_step=next_step(step),
            completed=completed,
            onboarding_token=token,
        )

    # ── Read side ────────────────────────────────────────────

    async def describe(self, step: int, token: str | None = None) -> StepContext:
        """Entry point for a step: same guard as submit, no writes."""
        definition = STEPS[step]
        record_id, progress = await self._guard(step, token)
        return StepContext(
            step=step,
            title=definition.title,
            progress=progress or 0,
            state=state_for_progress(progress),
            record_id=record_id,
            options=definition.options,
            defaults=definition.defaults,
        )

    async def get_progress(self, token: str | None) -> OnboardingProgress:
        """Snapshot of the in-progress record, for resuming the wizard."""
        record_id, _ = await self._resolve(token)
        record = await self.records.get_record(record_id) if record_id else None
        if record is None:
            raise NavigationRedirect(1, "No onboarding in progress")
        state = state_for_progress(record.progress)
        return OnboardingProgress(
            state=state,
            progress=record.progress,
            next_step=awaited_step(state),
            record=OnboardingRecordOut.model_validate(record),
        )
