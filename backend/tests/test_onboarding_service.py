"""Step controller tests: guards, branches, uploads, persistence."""

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from sellerboard.middleware.exceptions import (
    NavigationRedirect,
    OnboardingValidationError,
    PersistenceError,
)
from sellerboard.services.onboarding import StepController
from sellerboard.services.record_store import RecordStore
from sellerboard.services.state_machine import OnboardingState
from sellerboard.services.uploads import IncomingFile

INVENTORY_YES = {
    "has_inventory": "yes",
    "include_drafts": "on",
    "made_to_order": "on",
    "integration": "on",
}
SHIPPING_FIXED = {
    "shipping": "fixed",
    "fixed_cost": "4.50",
    "free_threshold": "50",
    "pickup": "on",
    "returns": "30",
    "cancellation": "1",
}
DETAILS = {
    "description": "Handmade ceramics from a small studio.",
    "badges": ["Family Owned", "Eco Smart"],
    "instagram": "https://instagram.com/acmegoods",
    "complete": "Complete",
}


class BrokenSession:
    """AsyncSession stand-in whose writes always fail."""

    def __init__(self):
        self.rolled_back = False

    def add(self, instance):
        pass

    async def flush(self):
        raise OperationalError("INSERT INTO seller_onboarding", {}, Exception("disk I/O error"))

    async def execute(self, *args, **kwargs):
        raise OperationalError("UPDATE seller_onboarding", {}, Exception("disk I/O error"))

    async def commit(self):
        pass

    async def rollback(self):
        self.rolled_back = True


class UnreliableSessions:
    """Wraps a session holder; selected operations fail like a Redis outage."""

    def __init__(self, inner, fail_set=False, fail_clear=False):
        self.inner = inner
        self.fail_set = fail_set
        self.fail_clear = fail_clear

    async def get(self, token):
        return await self.inner.get(token)

    async def set(self, record_id):
        if self.fail_set:
            raise PersistenceError("Onboarding session store unavailable")
        return await self.inner.set(record_id)

    async def clear(self, token):
        if self.fail_clear:
            raise PersistenceError("Onboarding session store unavailable")
        await self.inner.clear(token)


async def _start(controller, shop_info, **kwargs):
    return await controller.submit(1, shop_info, **kwargs)


@pytest.mark.asyncio
class TestStepSequence:
    async def test_full_wizard_progress(self, controller, sessions, shop_info, load_record):
        """Each step commits 25% more and step 4 finishes the wizard."""
        result = await _start(controller, shop_info)
        token = result.onboarding_token
        assert result.progress == 25
        assert result.state == OnboardingState.AWAITING_INVENTORY
        assert result.next_step == 2
        assert token in sessions.tokens

        result = await controller.submit(2, INVENTORY_YES, token=token)
        assert result.progress == 50
        result = await controller.submit(3, SHIPPING_FIXED, token=token)
        assert result.progress == 75
        result = await controller.submit(4, DETAILS, token=token)
        assert result.progress == 100
        assert result.completed is True
        assert result.next_step is None
        assert result.onboarding_token is None
        assert token not in sessions.tokens

        record = await load_record(result.record_id)
        assert record.shop_name == "Acme Goods"
        assert record.postal_code == "94000"
        assert record.has_inventory is True
        assert record.integration_access is True
        assert record.shipping_method == "fixed"
        assert record.fixed_cost == Decimal("4.50")
        assert record.free_threshold == Decimal("50")
        assert record.package_size is None
        assert record.offer_pickup is True
        assert record.return_days == 30
        assert record.cancel_days == 1
        assert record.badges == ["Family Owned", "Eco Smart"]
        assert record.completed is True
        assert record.skipped_optional is False
        assert record.submitted_at is not None
        assert record.progress == 100

    async def test_no_inventory_clears_inventory_fields(self, controller, shop_info, load_record):
        """Answering "no" stores NULL for the file and every flag."""
        token = (await _start(controller, shop_info)).onboarding_token
        result = await controller.submit(
            2,
            {"has_inventory": "no", "include_drafts": "on"},
            token=token,
            upload=IncomingFile("stock.csv", b"sku,qty\n1,2\n"),
        )

        record = await load_record(result.record_id)
        assert record.has_inventory is False
        assert record.inventory_file is None
        assert record.include_drafts is None
        assert record.made_to_order is None
        assert record.integration_access is None

    async def test_unchecked_checkboxes_store_false(self, controller, shop_info, load_record):
        token = (await _start(controller, shop_info)).onboarding_token
        result = await controller.submit(2, {"has_inventory": "yes"}, token=token)

        record = await load_record(result.record_id)
        assert record.include_drafts is False
        assert record.made_to_order is False
        assert record.integration_access is False

    async def test_free_shipping_clears_costs(self, controller, shop_info, load_record):
        """Stale cost inputs from another branch are not stored."""
        token = (await _start(controller, shop_info)).onboarding_token
        await controller.submit(2, {"has_inventory": "no"}, token=token)
        result = await controller.submit(
            3,
            {
                "shipping": "free",
                "fixed_cost": "9.99",
                "free_threshold": "100",
                "package_size": "large",
                "call_scheduled": "on",
            },
            token=token,
        )

        record = await load_record(result.record_id)
        assert record.shipping_method == "free"
        assert record.fixed_cost is None
        assert record.free_threshold is None
        assert record.package_size is None
        assert record.call_scheduled is None
        assert record.offer_pickup is False
        assert record.return_days == 12
        assert record.cancel_days == 3

    async def test_distance_shipping_keeps_package_size(self, controller, shop_info, load_record):
        token = (await _start(controller, shop_info)).onboarding_token
        await controller.submit(2, {"has_inventory": "no"}, token=token)
        result = await controller.submit(
            3,
            {"shipping": "distance", "package_size": "medium", "fixed_cost": "3"},
            token=token,
        )

        record = await load_record(result.record_id)
        assert record.package_size == "medium"
        assert record.fixed_cost is None
        assert record.free_threshold is None

    async def test_call_shipping_records_call_flag(self, controller, shop_info, load_record):
        token = (await _start(controller, shop_info)).onboarding_token
        await controller.submit(2, {"has_inventory": "no"}, token=token)
        result = await controller.submit(
            3, {"shipping": "call", "call_scheduled": "1"}, token=token
        )

        record = await load_record(result.record_id)
        assert record.call_scheduled is True

    async def test_skip_finishes_without_optional_fields(self, controller, shop_info, load_record):
        """Skip stores NULL extras but still completes the wizard."""
        token = (await _start(controller, shop_info)).onboarding_token
        await controller.submit(2, {"has_inventory": "no"}, token=token)
        await controller.submit(3, {"shipping": "pickup"}, token=token)
        result = await controller.submit(
            4, {**DETAILS, "skip": "Skip", "complete": None}, token=token
        )

        assert result.completed is True
        record = await load_record(result.record_id)
        assert record.skipped_optional is True
        assert record.completed is True
        assert record.progress == 100
        assert record.description is None
        assert record.badges is None
        assert record.instagram is None


@pytest.mark.asyncio
class TestGuards:
    async def test_step_without_token_redirects_to_step_one(self, controller, count_records):
        with pytest.raises(NavigationRedirect) as exc:
            await controller.submit(2, INVENTORY_YES)
        assert exc.value.step == 1
        assert exc.value.location == "/api/onboarding/step/1"
        assert await count_records() == 0

    async def test_unknown_token_redirects_to_step_one(self, controller):
        with pytest.raises(NavigationRedirect) as exc:
            await controller.submit(3, SHIPPING_FIXED, token="not-a-token")
        assert exc.value.step == 1

    async def test_skipping_ahead_redirects_to_awaited_step(self, controller, shop_info, load_record):
        """Step 3 right after step 1 sends the seller back to step 2."""
        result = await _start(controller, shop_info)
        with pytest.raises(NavigationRedirect) as exc:
            await controller.submit(3, SHIPPING_FIXED, token=result.onboarding_token)
        assert exc.value.step == 2

        record = await load_record(result.record_id)
        assert record.progress == 25
        assert record.shipping_method is None

    async def test_going_back_two_steps_redirects(self, controller, shop_info):
        token = (await _start(controller, shop_info)).onboarding_token
        await controller.submit(2, {"has_inventory": "no"}, token=token)
        await controller.submit(3, {"shipping": "free"}, token=token)
        with pytest.raises(NavigationRedirect) as exc:
            await controller.submit(2, {"has_inventory": "yes"}, token=token)
        assert exc.value.step == 4

    async def test_resubmitting_a_step_is_accepted(self, controller, shop_info, load_record):
        """A double submit of step 2 overwrites it and keeps progress at 50."""
        token = (await _start(controller, shop_info)).onboarding_token
        await controller.submit(2, INVENTORY_YES, token=token)
        result = await controller.submit(2, {"has_inventory": "no"}, token=token)

        assert result.progress == 50
        record = await load_record(result.record_id)
        assert record.progress == 50
        assert record.has_inventory is False

    async def test_step_one_with_token_updates_same_record(
        self, controller, shop_info, load_record, count_records
    ):
        first = await _start(controller, shop_info)
        shop_info["shop_name"] = "Acme Goods & Co"
        second = await _start(controller, shop_info, token=first.onboarding_token)

        assert second.record_id == first.record_id
        assert second.onboarding_token == first.onboarding_token
        assert await count_records() == 1
        record = await load_record(first.record_id)
        assert record.shop_name == "Acme Goods & Co"

    async def test_step_one_after_step_two_redirects(self, controller, shop_info):
        token = (await _start(controller, shop_info)).onboarding_token
        await controller.submit(2, {"has_inventory": "no"}, token=token)
        with pytest.raises(NavigationRedirect) as exc:
            await _start(controller, shop_info, token=token)
        assert exc.value.step == 3

    async def test_finished_record_starts_a_new_one(self, controller, sessions, shop_info, count_records):
        """Once step 4 commits, the old token no longer resumes anything."""
        token = (await _start(controller, shop_info)).onboarding_token
        await controller.submit(2, {"has_inventory": "no"}, token=token)
        await controller.submit(3, {"shipping": "free"}, token=token)
        await controller.submit(4, {"action": "skip"}, token=token)

        with pytest.raises(NavigationRedirect):
            await controller.submit(2, {"has_inventory": "no"}, token=token)
        result = await _start(controller, shop_info, token=token)
        assert result.progress == 25
        assert await count_records() == 2


@pytest.mark.asyncio
class TestValidation:
    async def test_missing_step_one_fields(self, controller, shop_info, count_records):
        del shop_info["city"]
        shop_info["phone"] = "  "
        with pytest.raises(OnboardingValidationError) as exc:
            await _start(controller, shop_info)
        assert exc.value.fields == ["city", "phone"]
        assert await count_records() == 0

    async def test_fixed_shipping_requires_cost(self, controller, shop_info, load_record):
        token = (await _start(controller, shop_info)).onboarding_token
        result = await controller.submit(2, {"has_inventory": "no"}, token=token)
        with pytest.raises(OnboardingValidationError) as exc:
            await controller.submit(3, {"shipping": "fixed"}, token=token)
        assert exc.value.fields == ["fixed_cost"]

        record = await load_record(result.record_id)
        assert record.progress == 50
        assert record.shipping_method is None

    async def test_distance_shipping_requires_package_size(self, controller, shop_info):
        token = (await _start(controller, shop_info)).onboarding_token
        await controller.submit(2, {"has_inventory": "no"}, token=token)
        with pytest.raises(OnboardingValidationError) as exc:
            await controller.submit(3, {"shipping": "distance"}, token=token)
        assert exc.value.fields == ["package_size"]

    async def test_description_with_everyday_punctuation(self, controller, shop_info, load_record):
        token = (await _start(controller, shop_info)).onboarding_token
        await controller.submit(2, {"has_inventory": "no"}, token=token)
        await controller.submit(3, {"shipping": "free"}, token=token)
        description = "Buy one = get one free on all mugs. condition=new, money=back."
        result = await controller.submit(
            4, {"description": description, "action": "complete"}, token=token
        )

        record = await load_record(result.record_id)
        assert record.description == description

    async def test_invalid_badge_rejected(self, controller, shop_info):
        token = (await _start(controller, shop_info)).onboarding_token
        await controller.submit(2, {"has_inventory": "no"}, token=token)
        await controller.submit(3, {"shipping": "free"}, token=token)
        with pytest.raises(OnboardingValidationError) as exc:
            await controller.submit(4, {"badges": ["Cat Owned"]}, token=token)
        assert exc.value.fields == ["badges"]


@pytest.mark.asyncio
class TestUploads:
    async def test_logo_reference_stored(self, controller, uploads, shop_info, load_record):
        result = await _start(controller, shop_info, upload=IncomingFile("logo.png", b"\x89PNG"))

        record = await load_record(result.record_id)
        assert record.logo_path == "logos/0001-logo.png"
        assert uploads.files[record.logo_path] == b"\x89PNG"

    async def test_inventory_file_stored_when_inventory_exists(self, controller, shop_info, load_record):
        token = (await _start(controller, shop_info)).onboarding_token
        result = await controller.submit(
            2, INVENTORY_YES, token=token, upload=IncomingFile("stock.csv", b"sku,qty\n")
        )

        record = await load_record(result.record_id)
        assert record.inventory_file == "inventory/0001-stock.csv"

    async def test_failed_upload_leaves_field_empty(self, controller, uploads, shop_info, load_record):
        """The step still commits; only the file reference is lost."""
        uploads.fail = True
        result = await _start(controller, shop_info, upload=IncomingFile("logo.png", b"\x89PNG"))

        assert result.progress == 25
        record = await load_record(result.record_id)
        assert record.logo_path is None


@pytest.mark.asyncio
class TestPersistence:
    async def test_write_failure_raises_and_mints_no_token(self, sessions, uploads, shop_info):
        broken = BrokenSession()
        controller = StepController(RecordStore(broken), sessions, uploads)

        with pytest.raises(PersistenceError) as exc:
            await controller.submit(1, shop_info)
        assert exc.value.status_code == 503
        assert broken.rolled_back is True
        assert sessions.tokens == {}

    async def test_token_store_failure_leaves_no_record(
        self, db_session, sessions, uploads, shop_info, count_records
    ):
        """A step 1 whose token can't be minted commits nothing, even on retry."""
        controller = StepController(
            RecordStore(db_session), UnreliableSessions(sessions, fail_set=True), uploads
        )

        for _ in range(2):
            with pytest.raises(PersistenceError):
                await controller.submit(1, shop_info)
        assert await count_records() == 0
        assert sessions.tokens == {}

    async def test_token_clear_failure_still_completes(
        self, controller, sessions, shop_info, load_record
    ):
        """Step 4 reports success once committed, even if the token lingers."""
        token = (await _start(controller, shop_info)).onboarding_token
        await controller.submit(2, {"has_inventory": "no"}, token=token)
        await controller.submit(3, {"shipping": "free"}, token=token)
        controller.sessions = UnreliableSessions(sessions, fail_clear=True)

        result = await controller.submit(4, {"action": "complete"}, token=token)
        assert result.completed is True
        assert result.onboarding_token is None
        assert token in sessions.tokens
        record = await load_record(result.record_id)
        assert record.progress == 100

        # A lingering token no longer resumes the finished record
        with pytest.raises(NavigationRedirect) as exc:
            await controller.submit(2, {"has_inventory": "no"}, token=token)
        assert exc.value.step == 1


@pytest.mark.asyncio
class TestReadSide:
    async def test_describe_step_one_for_new_seller(self, controller):
        context = await controller.describe(1)
        assert context.progress == 0
        assert context.state == OnboardingState.AWAITING_SHOP_INFO
        assert context.record_id is None
        assert context.options["aspect"] == ["1:1", "free"]

    async def test_describe_shipping_step(self, controller, shop_info):
        token = (await _start(controller, shop_info)).onboarding_token
        await controller.submit(2, {"has_inventory": "no"}, token=token)

        context = await controller.describe(3, token)
        assert context.progress == 50
        assert context.defaults == {"returns": 12, "cancellation": 3}
        assert "distance" in context.options["shipping"]

    async def test_describe_guards_like_submit(self, controller):
        with pytest.raises(NavigationRedirect) as exc:
            await controller.describe(4)
        assert exc.value.step == 1

    async def test_get_progress_snapshot(self, controller, shop_info):
        token = (await _start(controller, shop_info)).onboarding_token
        await controller.submit(2, INVENTORY_YES, token=token)

        snapshot = await controller.get_progress(token)
        assert snapshot.progress == 50
        assert snapshot.state == OnboardingState.AWAITING_SHIPPING
        assert snapshot.next_step == 3
        assert snapshot.record.shop_name == "Acme Goods"
        assert snapshot.record.has_inventory is True

    async def test_get_progress_without_token(self, controller):
        with pytest.raises(NavigationRedirect):
            await controller.get_progress(None)


@pytest.mark.integration
@pytest.mark.asyncio
class TestReferenceScenario:
    async def test_no_inventory_pickup_complete(self, controller, sessions, shop_info, load_record):
        """Acme Goods: no inventory, pickup shipping, two badges."""
        first = await _start(controller, shop_info)
        token = first.onboarding_token
        assert first.progress == 25 and token

        progress = [first.progress]
        progress.append((await controller.submit(2, {"has_inventory": "no"}, token=token)).progress)
        progress.append(
            (await controller.submit(3, {"shipping": "pickup", "pickup": "on"}, token=token)).progress
        )
        last = await controller.submit(
            4,
            {"badges": ["Veteran Owned", "Eco Smart"], "action": "complete"},
            token=token,
        )
        progress.append(last.progress)
        assert progress == [25, 50, 75, 100]

        record = await load_record(first.record_id)
        assert record.inventory_file is None
        assert record.include_drafts is None
        assert record.fixed_cost is None
        assert record.free_threshold is None
        assert record.package_size is None
        assert record.offer_pickup is True
        assert sorted(record.badges) == ["Eco Smart", "Veteran Owned"]
        assert record.completed is True
        assert sessions.tokens == {}
