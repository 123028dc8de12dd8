"""Onboarding state machine.

Four fixed steps, one terminal state:

    AWAITING_SHOP_INFO → AWAITING_INVENTORY → AWAITING_SHIPPING
        → AWAITING_DETAILS → COMPLETE

The state is never stored: it is derived from the record's `progress`
column (none, 25, 50, 75, 100). Committing step N sets progress to
25 * N, which is the only way a transition fires.
"""

import enum

TOTAL_STEPS = 4

# Progress value written when a step commits
STEP_PROGRESS: dict[int, int] = {1: 25, 2: 50, 3: 75, 4: 100}

STEP_TITLES: dict[int, str] = {
    1: "Shop information",
    2: "Inventory management",
    3: "Shipping configuration",
    4: "Shop details",
}


class OnboardingState(str, enum.Enum):
    AWAITING_SHOP_INFO = "awaiting_shop_info"
    AWAITING_INVENTORY = "awaiting_inventory"
    AWAITING_SHIPPING = "awaiting_shipping"
    AWAITING_DETAILS = "awaiting_details"
    COMPLETE = "complete"


_STATE_BY_PROGRESS: dict[int | None, OnboardingState] = {
    None: OnboardingState.AWAITING_SHOP_INFO,
    25: OnboardingState.AWAITING_INVENTORY,
    50: OnboardingState.AWAITING_SHIPPING,
    75: OnboardingState.AWAITING_DETAILS,
    100: OnboardingState.COMPLETE,
}

# Step a state is waiting for; COMPLETE waits for nothing
_AWAITED_STEP: dict[OnboardingState, int | None] = {
    OnboardingState.AWAITING_SHOP_INFO: 1,
    OnboardingState.AWAITING_INVENTORY: 2,
    OnboardingState.AWAITING_SHIPPING: 3,
    OnboardingState.AWAITING_DETAILS: 4,
    OnboardingState.COMPLETE: None,
}


def state_for_progress(progress: int | None) -> OnboardingState:
    """Map a stored progress value to its state."""
    try:
        return _STATE_BY_PROGRESS[progress]
    except KeyError:
        raise ValueError(f"Unknown onboarding progress value: {progress!r}") from None


def awaited_step(state: OnboardingState) -> int | None:
    return _AWAITED_STEP[state]


def next_step(step: int) -> int | None:
    return step + 1 if step < TOTAL_STEPS else None


def allowed_progress(step: int) -> tuple[int, ...]:
    """Progress values a record may hold when step `step` is submitted.

    The record is either waiting for this step, or has just committed it
    and the same form arrives again (double submit). Step 1 on a new
    seller has no record at all and is handled by the caller.
    """
    if step == 1:
        return (STEP_PROGRESS[1],)
    return (STEP_PROGRESS[step - 1], STEP_PROGRESS[step])


def can_enter(step: int, progress: int | None) -> bool:
    """Entry guard for `step` given the record's current progress."""
    if progress is None:
        return step == 1
    return progress in allowed_progress(step)


def redirect_target(progress: int | None) -> int:
    """Step a caller should be sent to when `can_enter` fails.

    No record, or a finished one, restarts at step 1.
    """
    if progress is None:
        return 1
    return awaited_step(state_for_progress(progress)) or 1
