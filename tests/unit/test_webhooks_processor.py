import asyncio
import json
import time

import pytest
from fakeredis import FakeServer
from fakeredis.aioredis import FakeRedis

from checkout_backend.errors import ReplaySuspected, SignatureInvalid
from checkout_backend.orders.service import ach_draft_key
from checkout_backend.orders.shopify_client import ShopifyError
from checkout_backend.store import CheckoutStore
from checkout_backend.webhooks.processor import WebhookProcessor, WebhookState

SECRET = "whsec_test_secret"


def _processor(order_client, environment="test", **kwargs) -> WebhookProcessor:
    store = CheckoutStore(FakeRedis(server=FakeServer(), decode_responses=True))
    return WebhookProcessor(store, order_client, secret=SECRET, environment=environment, **kwargs)


def _deliver(processor, payload, sign, **sign_kwargs):
    return processor.process(payload.encode(), sign(payload, **sign_kwargs))


def test_succeeded_event_dispatches_one_draft_order(order_client, pi_event, sign):
    async def scenario():
        processor = _processor(order_client)
        return await _deliver(processor, pi_event(), sign)

    outcome = asyncio.run(scenario())
    assert outcome.action == "order_dispatched"
    assert outcome.trail == [
        WebhookState.RECEIVED_RAW,
        WebhookState.SIGNATURE_VERIFIED,
        WebhookState.DEDUPLICATED,
        WebhookState.METADATA_PARSED,
        WebhookState.ORDER_DISPATCHED,
        WebhookState.ACKNOWLEDGED,
    ]
    assert len(order_client.drafts) == 1
    draft = order_client.drafts[0]
    assert draft["email"] == "buyer@example.com"
    assert "TEST_ORDER" in draft["tags"]
    assert {"name": "rep", "value": "rep42"} in draft["note_attributes"]
    assert outcome.result["kind"] == "draft_order"


def test_production_creates_paid_order(order_client, pi_event, order_metadata, sign):
    order_metadata["environment"] = "production"

    async def scenario():
        processor = _processor(order_client, environment="production")
        return await _deliver(processor, pi_event(metadata=order_metadata), sign)

    outcome = asyncio.run(scenario())
    assert outcome.action == "order_dispatched"
    assert order_client.drafts == []
    order = order_client.orders[0]
    assert order["financial_status"] == "paid"
    assert order["transactions"][0]["amount"] == "94.27"


def test_same_event_twice_dispatches_once(order_client, pi_event, sign):
    async def scenario():
        processor = _processor(order_client)
        payload = pi_event(event_id="evt_dup")
        first = await _deliver(processor, payload, sign)
        second = await _deliver(processor, payload, sign)
        return first, second

    first, second = asyncio.run(scenario())
    assert first.action == "order_dispatched"
    assert second.action == "duplicate_event"
    assert second.state == WebhookState.ACKNOWLEDGED
    assert len(order_client.drafts) == 1


def test_concurrent_duplicate_deliveries_dispatch_once(order_client, pi_event, sign):
    async def scenario():
        processor = _processor(order_client)
        payload = pi_event(event_id="evt_race")
        return await asyncio.gather(*[_deliver(processor, payload, sign) for _ in range(5)])

    outcomes = asyncio.run(scenario())
    assert sorted(o.action for o in outcomes) == ["duplicate_event"] * 4 + ["order_dispatched"]
    assert len(order_client.drafts) == 1


def test_distinct_events_for_same_intent_dispatch_once(order_client, pi_event, sign):
    async def scenario():
        processor = _processor(order_client)
        first = await _deliver(processor, pi_event(event_id="evt_a", intent_id="pi_same"), sign)
        second = await _deliver(processor, pi_event(event_id="evt_b", intent_id="pi_same"), sign)
        return first, second

    first, second = asyncio.run(scenario())
    assert first.action == "order_dispatched"
    assert second.action == "duplicate_payment"
    assert len(order_client.drafts) == 1


def test_environment_mismatch_is_skipped(order_client, pi_event, order_metadata, sign, caplog):
    order_metadata["environment"] = "production"

    async def scenario():
        processor = _processor(order_client, environment="staging")
        return await _deliver(processor, pi_event(metadata=order_metadata), sign)

    with caplog.at_level("INFO"):
        outcome = asyncio.run(scenario())
    assert outcome.action == "skipped_environment"
    assert order_client.drafts == [] and order_client.orders == []
    assert "skipped: environment mismatch" in caplog.text


@pytest.mark.parametrize("env", ["", "qa-branch"])
def test_missing_or_unknown_environment_is_skipped(order_client, pi_event, order_metadata, sign, env):
    order_metadata["environment"] = env

    async def scenario():
        processor = _processor(order_client)
        return await _deliver(processor, pi_event(metadata=order_metadata), sign)

    assert asyncio.run(scenario()).action == "skipped_environment"
    assert order_client.drafts == []


def test_environment_alias_matches(order_client, pi_event, order_metadata, sign):
    order_metadata["environment"] = "prod"

    async def scenario():
        processor = _processor(order_client, environment="production")
        return await _deliver(processor, pi_event(metadata=order_metadata), sign)

    assert asyncio.run(scenario()).action == "order_dispatched"


def test_missing_required_metadata_is_acknowledged_without_order(order_client, pi_event, sign, caplog):
    async def scenario():
        processor = _processor(order_client)
        return await _deliver(processor, pi_event(metadata={"environment": "test", "rep": "rep1"}), sign)

    with caplog.at_level("ERROR"):
        outcome = asyncio.run(scenario())
    assert outcome.action == "metadata_invalid"
    assert outcome.state == WebhookState.ACKNOWLEDGED
    assert WebhookState.METADATA_PARSED not in outcome.trail
    assert order_client.drafts == []
    assert "customer_email" in caplog.text


def test_unhandled_event_type_is_ignored(order_client, pi_event, sign):
    async def scenario():
        processor = _processor(order_client)
        return await _deliver(processor, pi_event(event_type="customer.created"), sign)

    assert asyncio.run(scenario()).action == "ignored_type"
    assert order_client.drafts == []


def test_card_processing_event_waits_for_succeeded(order_client, pi_event, sign):
    async def scenario():
        processor = _processor(order_client)
        return await _deliver(processor, pi_event(event_type="payment_intent.processing"), sign)

    assert asyncio.run(scenario()).action == "ignored_processing"
    assert order_client.drafts == []


def test_ach_flow_pending_then_completed(order_client, pi_event, sign):
    async def scenario():
        processor = _processor(order_client)
        processing = await _deliver(processor, pi_event(
            event_id="evt_p", event_type="payment_intent.processing", intent_id="pi_ach", methods=["us_bank_account"],
        ), sign)
        mapping = await processor.store.get_json(ach_draft_key(processor.store, "pi_ach"))
        succeeded = await _deliver(processor, pi_event(
            event_id="evt_s", intent_id="pi_ach", methods=["us_bank_account"],
        ), sign)
        leftover = await processor.store.get_json(ach_draft_key(processor.store, "pi_ach"))
        return processing, mapping, succeeded, leftover

    processing, mapping, succeeded, leftover = asyncio.run(scenario())
    assert processing.action == "order_dispatched"
    draft = order_client.drafts[0]
    assert "ACH_PENDING" in draft["tags"]
    assert draft["note"].startswith("ACH PAYMENT (Pending Bank Verification)")
    assert mapping["id"] == processing.result["id"]

    assert succeeded.action == "order_dispatched"
    assert len(order_client.drafts) == 1
    draft_id, changes = order_client.updated[0]
    assert draft_id == mapping["id"]
    assert "ACH_COMPLETED" in changes["tags"] and "ACH_PENDING" not in changes["tags"]
    assert order_client.completed == [mapping["id"]]
    assert leftover is None


def test_ach_failure_cancels_pending_draft(order_client, pi_event, sign):
    async def scenario():
        processor = _processor(order_client)
        pending = await _deliver(processor, pi_event(
            event_id="evt_p", event_type="payment_intent.processing", intent_id="pi_ach", methods=["us_bank_account"],
        ), sign)
        failed = await _deliver(processor, pi_event(
            event_id="evt_f", event_type="payment_intent.payment_failed", intent_id="pi_ach",
        ), sign)
        leftover = await processor.store.get_json(ach_draft_key(processor.store, "pi_ach"))
        return pending, failed, leftover

    pending, failed, leftover = asyncio.run(scenario())
    assert failed.action == "ach_cancelled"
    assert order_client.deleted == [pending.result["id"]]
    assert leftover is None


def test_card_failure_is_only_logged(order_client, pi_event, sign):
    async def scenario():
        processor = _processor(order_client)
        return await _deliver(processor, pi_event(event_type="payment_intent.payment_failed"), sign)

    assert asyncio.run(scenario()).action == "payment_failed"
    assert order_client.deleted == []


def test_shopify_failure_is_acknowledged_and_releases_guard(order_client, pi_event, sign):
    async def failing_create(draft):
        raise ShopifyError("HTTP 422 on POST /draft_orders.json", 422)

    order_client.create_draft_order = failing_create

    async def scenario():
        processor = _processor(order_client)
        outcome = await _deliver(processor, pi_event(intent_id="pi_fail"), sign)
        guard = await processor.store.get(processor.store.key("order", "pi_fail"))
        return outcome, guard

    outcome, guard = asyncio.run(scenario())
    assert outcome.action == "dispatch_failed"
    assert outcome.state == WebhookState.ACKNOWLEDGED
    assert guard is None


def test_slow_dispatch_is_acknowledged_then_completes(order_client, pi_event, sign):
    original = order_client.create_draft_order

    async def slow_create(draft):
        await asyncio.sleep(0.2)
        return await original(draft)

    order_client.create_draft_order = slow_create

    async def scenario():
        processor = _processor(order_client, dispatch_wait=0.01)
        outcome = await _deliver(processor, pi_event(), sign)
        drafts_before = len(order_client.drafts)
        await processor.drain()
        return outcome, drafts_before

    outcome, drafts_before = asyncio.run(scenario())
    assert outcome.action == "dispatch_pending"
    assert drafts_before == 0
    assert len(order_client.drafts) == 1


def test_unconfigured_order_client(pi_event, sign):
    async def scenario():
        processor = _processor(None)
        return await _deliver(processor, pi_event(), sign)

    assert asyncio.run(scenario()).action == "dispatch_unconfigured"


def test_rejections_happen_before_any_side_effect(order_client, pi_event, sign):
    async def scenario():
        processor = _processor(order_client, clock=lambda: time.time() + 6 * 60)
        payload = pi_event()
        with pytest.raises(ReplaySuspected):
            await _deliver(processor, payload, sign)
        with pytest.raises(SignatureInvalid):
            await processor.process(payload.encode(), "t=1,v1=deadbeef")
        seen = await processor.store.get(processor.store.key("webhook_event", "evt_1"))
        return seen

    assert asyncio.run(scenario()) is None
    assert order_client.drafts == []


def test_invalid_json_with_valid_signature_is_rejected(order_client, sign):
    async def scenario():
        processor = _processor(order_client)
        payload = "not json"
        return await processor.process(payload.encode(), sign(payload))

    with pytest.raises(SignatureInvalid) as ei:
        asyncio.run(scenario())
    assert ei.value.detail == "Webhook Error: Invalid payload"


def test_event_without_id_is_rejected(order_client, sign):
    async def scenario():
        processor = _processor(order_client)
        payload = json.dumps({"type": "payment_intent.succeeded"})
        return await processor.process(payload.encode(), sign(payload))

    with pytest.raises(SignatureInvalid):
        asyncio.run(scenario())


def test_unexpected_dispatch_error_is_acknowledged_and_releases_guard(order_client, pi_event, sign):
    async def broken_create(draft):
        raise RuntimeError("boom")

    order_client.create_draft_order = broken_create

    async def scenario():
        processor = _processor(order_client)
        outcome = await _deliver(processor, pi_event(intent_id="pi_boom"), sign)
        guard = await processor.store.get(processor.store.key("order", "pi_boom"))
        return outcome, guard

    outcome, guard = asyncio.run(scenario())
    assert outcome.action == "dispatch_failed"
    assert guard is None


def test_non_numeric_amount_is_acknowledged(order_client, pi_event, order_metadata, sign):
    order_metadata["environment"] = "production"

    async def scenario():
        processor = _processor(order_client, environment="production")
        return await _deliver(processor, pi_event(amount="lots"), sign)

    outcome = asyncio.run(scenario())
    assert outcome.state == WebhookState.ACKNOWLEDGED
    assert outcome.action == "dispatch_failed"
    assert order_client.orders == []


@pytest.mark.parametrize("data", ["oops", ["x"], {"object": "oops"}, {"object": [1, 2]}])
def test_event_with_malformed_data_is_rejected(order_client, sign, data):
    async def scenario():
        processor = _processor(order_client)
        payload = json.dumps({"id": "evt_shape", "type": "payment_intent.succeeded", "data": data})
        with pytest.raises(SignatureInvalid) as ei:
            await processor.process(payload.encode(), sign(payload))
        seen = await processor.store.get(processor.store.key("webhook_event", "evt_shape"))
        return ei.value, seen

    error, seen = asyncio.run(scenario())
    assert error.detail == "Webhook Error: Invalid event"
    assert seen is None
    assert order_client.drafts == []


@pytest.mark.parametrize("metadata", ["oops", ["customer_email"], 42])
def test_non_mapping_metadata_is_acknowledged_as_invalid(order_client, sign, metadata):
    async def scenario():
        processor = _processor(order_client)
        payload = json.dumps({
            "id": "evt_meta",
            "type": "payment_intent.succeeded",
            "data": {"object": {"id": "pi_meta", "metadata": metadata}},
        })
        return await processor.process(payload.encode(), sign(payload))

    outcome = asyncio.run(scenario())
    assert outcome.action == "metadata_invalid"
    assert order_client.drafts == []


def test_unexpected_error_after_verification_is_still_acknowledged(order_client, pi_event, sign):
    async def broken_set_if_absent(*args, **kwargs):
        raise RuntimeError("boom")

    async def scenario():
        processor = _processor(order_client)
        processor.store.set_if_absent = broken_set_if_absent
        return await _deliver(processor, pi_event(), sign)

    outcome = asyncio.run(scenario())
    assert outcome.action == "processing_error"
    assert outcome.state == WebhookState.ACKNOWLEDGED
    assert order_client.drafts == []
