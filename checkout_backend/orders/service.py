"""
Cas d'usage 'orders': transforme un paiement confirmé en commande Shopify.

- Production: commande réelle payée (orders.json)
- Autres environnements: brouillon de commande (draft_orders.json)
- ACH: brouillon en attente à "processing", complété à "succeeded", supprimé en cas d'échec
"""
import logging
from typing import Any, Dict, Optional

from checkout_backend import config
from checkout_backend.payments.metadata import OrderMetadata
from checkout_backend.store import CheckoutStore
from . import builder
from .shopify_client import ShopifyAdminClient

logger = logging.getLogger(__name__)


def ach_draft_key(store: CheckoutStore, intent_id: str) -> str:
    return store.key("ach_draft", intent_id)


async def create_paid_order(
    client: ShopifyAdminClient,
    meta: OrderMetadata,
    *,
    intent_id: str,
    amount: int,
    environment: str,
) -> Dict[str, Any]:
    if environment == "production":
        order = await client.create_order(builder.build_order(meta, intent_id=intent_id, amount=amount, environment=environment))
        logger.info("orders.created order=%s name=%s intent=%s", order.get("id"), order.get("name"), intent_id)
        return {"kind": "order", "id": order.get("id"), "name": order.get("name")}
    draft = await client.create_draft_order(builder.build_draft_order(meta, intent_id=intent_id, environment=environment))
    logger.info("orders.draft_created draft=%s env=%s intent=%s", draft.get("id"), environment, intent_id)
    return {"kind": "draft_order", "id": draft.get("id"), "name": draft.get("name")}


async def create_pending_ach_order(
    client: ShopifyAdminClient,
    store: CheckoutStore,
    meta: OrderMetadata,
    *,
    intent_id: str,
    environment: str,
) -> Dict[str, Any]:
    draft = await client.create_draft_order(
        builder.build_draft_order(meta, intent_id=intent_id, environment=environment, ach_pending=True)
    )
    if draft.get("id"):
        await store.set_json(
            ach_draft_key(store, intent_id),
            {"id": draft["id"], "tags": draft.get("tags") or ""},
            config.EVENT_DEDUP_TTL_SECONDS,
        )
    logger.info("orders.ach_pending draft=%s intent=%s", draft.get("id"), intent_id)
    return {"kind": "draft_order", "id": draft.get("id"), "name": draft.get("name"), "pending": True}


async def pending_ach_draft(store: CheckoutStore, intent_id: str) -> Optional[Dict[str, Any]]:
    record = await store.get_json(ach_draft_key(store, intent_id))
    return record if isinstance(record, dict) and record.get("id") else None


async def complete_ach_order(
    client: ShopifyAdminClient,
    store: CheckoutStore,
    pending: Dict[str, Any],
    *,
    intent_id: str,
) -> Dict[str, Any]:
    draft_id = int(pending["id"])
    # Les tags se modifient avant la complétion: un brouillon complété est figé
    await client.update_draft_order(draft_id, {"tags": builder.completed_ach_tags(pending.get("tags") or "")})
    draft = await client.complete_draft_order(draft_id, payment_pending=False)
    await store.delete(ach_draft_key(store, intent_id))
    logger.info("orders.ach_completed draft=%s order=%s intent=%s", draft_id, draft.get("order_id"), intent_id)
    return {"kind": "draft_order", "id": draft_id, "order_id": draft.get("order_id"), "completed": True}


async def cancel_ach_order(
    client: ShopifyAdminClient,
    store: CheckoutStore,
    *,
    intent_id: str,
    reason: str = "",
) -> Optional[int]:
    pending = await pending_ach_draft(store, intent_id)
    if pending is None:
        logger.info("orders.ach_cancel no pending draft intent=%s", intent_id)
        return None
    draft_id = int(pending["id"])
    await client.delete_draft_order(draft_id)
    await store.delete(ach_draft_key(store, intent_id))
    logger.warning("orders.ach_cancelled draft=%s intent=%s reason=%s", draft_id, intent_id, reason or "<unknown>")
    return draft_id
