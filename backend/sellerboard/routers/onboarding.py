"""Seller onboarding wizard: 4 steps, resumable via an onboarding token.

Endpoints:
  GET  /api/onboarding/          → progress snapshot for the token
  GET  /api/onboarding/step/{n}  → form context for step n (entry point)
  POST /api/onboarding/step/1    → shop info (+ optional logo)        → 25%
  POST /api/onboarding/step/2    → inventory (+ optional sheet)       → 50%
  POST /api/onboarding/step/3    → shipping                           → 75%
  POST /api/onboarding/step/4    → shop details, complete or skip     → 100%

Design:
  - Bodies are multipart/form-data with the wizard's HTML input names.
  - Step 1 returns `onboarding_token`; later steps send it back in the
    X-Onboarding-Token header (name set by settings).
  - A step the caller may not be on answers 303 → the step they belong
    on (step 1 when there is no token).
"""

from fastapi import APIRouter, Depends, Path, Request
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import FormData, UploadFile

from sellerboard.config import settings
from sellerboard.database import get_db
from sellerboard.schemas.onboarding import OnboardingProgress, StepContext, StepResult
from sellerboard.services.onboarding import UPLOAD_INPUTS, StepController
from sellerboard.services.record_store import RecordStore
from sellerboard.services.session_identity import SessionIdentityHolder
from sellerboard.services.uploads import IncomingFile, LocalUploadStore, UploadStore
from sellerboard.utils.redis_client import get_redis

router = APIRouter()

# Inputs that may repeat (<select multiple>); PHP-style "name[]" accepted
MULTI_VALUE_INPUTS = {"badges"}


# ── Dependencies ─────────────────────────────────────────────

async def get_session_identity() -> SessionIdentityHolder:
    return SessionIdentityHolder(await get_redis())


def get_upload_store() -> UploadStore:
    return LocalUploadStore()


def get_onboarding_token(request: Request) -> str | None:
    return request.headers.get(settings.onboarding_token_header) or None


def get_step_controller(
    db: AsyncSession = Depends(get_db),
    sessions: SessionIdentityHolder = Depends(get_session_identity),
    uploads: UploadStore = Depends(get_upload_store),
) -> StepController:
    return StepController(RecordStore(db), sessions, uploads)


# ── Helpers ──────────────────────────────────────────────────

def _form_fields(form: FormData) -> dict:
    """Flatten form data: text inputs only, repeatable inputs as lists."""
    fields: dict = {}
    for key in form.keys():
        name = key[:-2] if key.endswith("[]") else key
        values = [v for v in form.getlist(key) if not isinstance(v, UploadFile)]
        if not values:
            continue
        if name in MULTI_VALUE_INPUTS:
            fields.setdefault(name, []).extend(values)
        else:
            fields[name] = values[-1]
    return fields


async def _form_upload(form: FormData, step: int) -> IncomingFile | None:
    upload = form.get(UPLOAD_INPUTS[step]) if step in UPLOAD_INPUTS else None
    if not isinstance(upload, UploadFile) or not upload.filename:
        return None
    data = await upload.read()
    await upload.close()
    return IncomingFile(upload.filename, data)


async def _submit(
    step: int,
    request: Request,
    controller: StepController,
    token: str | None,
) -> StepResult:
    form = await request.form()
    upload = await _form_upload(form, step)
    return await controller.submit(step, _form_fields(form), token=token, upload=upload)


# ── GET /api/onboarding/ ─────────────────────────────────────

@router.get("/", response_model=OnboardingProgress)
async def get_progress(
    controller: StepController = Depends(get_step_controller),
    token: str | None = Depends(get_onboarding_token),
):
    """Current record and progress, for resuming the wizard."""
    return await controller.get_progress(token)


# ── GET /api/onboarding/step/{n} ─────────────────────────────

@router.get("/step/{step}", response_model=StepContext)
async def get_step(
    step: int = Path(ge=1, le=4),
    controller: StepController = Depends(get_step_controller),
    token: str | None = Depends(get_onboarding_token),
):
    """Form context (options, defaults, progress) for one step."""
    return await controller.describe(step, token)


# ── Per-step POST endpoints ──────────────────────────────────

@router.post("/step/1", response_model=StepResult)
async def submit_shop_info(
    request: Request,
    controller: StepController = Depends(get_step_controller),
    token: str | None = Depends(get_onboarding_token),
):
    """Shop name, address, phone, optional logo and aspect ratio."""
    return await _submit(1, request, controller, token)


@router.post("/step/2", response_model=StepResult)
async def submit_inventory(
    request: Request,
    controller: StepController = Depends(get_step_controller),
    token: str | None = Depends(get_onboarding_token),
):
    """Existing inventory (yes/no), optional inventory file and flags."""
    return await _submit(2, request, controller, token)


@router.post("/step/3", response_model=StepResult)
async def submit_shipping(
    request: Request,
    controller: StepController = Depends(get_step_controller),
    token: str | None = Depends(get_onboarding_token),
):
    """Shipping method and its branch fields, returns and cancellations."""
    return await _submit(3, request, controller, token)


@router.post("/step/4", response_model=StepResult)
async def submit_shop_details(
    request: Request,
    controller: StepController = Depends(get_step_controller),
    token: str | None = Depends(get_onboarding_token),
):
    """Description, badges, social links; `action` is complete or skip."""
    return await _submit(4, request, controller, token)
