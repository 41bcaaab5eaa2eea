"""
Traitement des webhooks Stripe, modélisé en machine à états.

  ReceivedRaw -> SignatureVerified -> Deduplicated -> MetadataParsed -> OrderDispatched -> Acknowledged
                 `-> Rejected (signature/format: 400, avant tout effet de bord)

Règle d'acquittement: une fois la signature validée, la réponse est toujours 200.
Les échecs en aval (métadonnées, environnement, Shopify) sont journalisés, jamais
renvoyés à Stripe, pour éviter les tempêtes de retries.

Idempotence:
- SET NX sur l'id d'événement: une livraison rejouée ne refait rien
- SET NX sur l'id du PaymentIntent: une seule commande par paiement, même si
  Stripe émet plusieurs événements distincts pour le même intent
"""
import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

from redis.exceptions import RedisError

from checkout_backend import config
from checkout_backend.config import normalize_environment
from checkout_backend.errors import SignatureInvalid
from checkout_backend.orders import service as orders_service
from checkout_backend.orders.shopify_client import ShopifyAdminClient, ShopifyError
from checkout_backend.payments.metadata import MetadataError, OrderMetadata, parse_order_metadata
from checkout_backend.store import CheckoutStore
from . import signature

logger = logging.getLogger(__name__)

SUCCEEDED = "payment_intent.succeeded"
PROCESSING = "payment_intent.processing"
PAYMENT_FAILED = "payment_intent.payment_failed"
CHARGE_FAILED = "charge.failed"
HANDLED_EVENT_TYPES = {SUCCEEDED, PROCESSING, PAYMENT_FAILED, CHARGE_FAILED}


class WebhookState(str, Enum):
    RECEIVED_RAW = "received_raw"
    SIGNATURE_VERIFIED = "signature_verified"
    DEDUPLICATED = "deduplicated"
    METADATA_PARSED = "metadata_parsed"
    ORDER_DISPATCHED = "order_dispatched"
    ACKNOWLEDGED = "acknowledged"
    REJECTED = "rejected"


@dataclass
class WebhookOutcome:
    event_id: str = ""
    event_type: str = ""
    action: str = ""
    trail: List[WebhookState] = field(default_factory=lambda: [WebhookState.RECEIVED_RAW])
    result: Optional[Dict[str, Any]] = None

    @property
    def state(self) -> WebhookState:
        return self.trail[-1]

    def advance(self, state: WebhookState) -> None:
        self.trail.append(state)

    def acknowledge(self, action: str) -> "WebhookOutcome":
        self.action = action
        self.advance(WebhookState.ACKNOWLEDGED)
        return self


class WebhookProcessor:
    def __init__(
        self,
        store: CheckoutStore,
        order_client: Optional[ShopifyAdminClient],
        *,
        secret: str,
        environment: str,
        tolerance: int = config.WEBHOOK_TOLERANCE_SECONDS,
        dedup_ttl: int = config.EVENT_DEDUP_TTL_SECONDS,
        dispatch_wait: float = config.WEBHOOK_DISPATCH_WAIT_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.order_client = order_client
        self.secret = secret
        self.environment = normalize_environment(environment)
        self.tolerance = tolerance
        self.dedup_ttl = dedup_ttl
        self.dispatch_wait = dispatch_wait
        self.clock = clock
        self._pending: Set[asyncio.Task] = set()

    # --- ReceivedRaw -> SignatureVerified | Rejected
    def verify(self, payload: bytes, sig_header: Optional[str]) -> Dict[str, Any]:
        text = signature.verify_signature(
            payload, sig_header, secret=self.secret, tolerance=self.tolerance, clock=self.clock,
        )
        try:
            event = json.loads(text)
        except ValueError:
            raise SignatureInvalid("Webhook Error: Invalid payload")
        if not isinstance(event, dict) or not event.get("id") or not event.get("type"):
            raise SignatureInvalid("Webhook Error: Invalid event")
        data = event.get("data") or {}
        if not isinstance(data, dict) or not isinstance(data.get("object") or {}, dict):
            raise SignatureInvalid("Webhook Error: Invalid event")
        return event

    async def process(self, payload: bytes, sig_header: Optional[str]) -> WebhookOutcome:
        """
        Traite une livraison. Lève SignatureInvalid/ReplaySuspected (-> 400);
        tout le reste se termine en Acknowledged.
        """
        outcome = WebhookOutcome()
        try:
            event = self.verify(payload, sig_header)
        except SignatureInvalid as e:
            outcome.advance(WebhookState.REJECTED)
            logger.warning("webhooks.rejected reason=%s", e.detail)
            raise
        outcome.advance(WebhookState.SIGNATURE_VERIFIED)
        outcome.event_id = str(event["id"])
        outcome.event_type = str(event["type"])
        try:
            return await self._handle(outcome, event)
        except Exception:
            # Signature valide: on acquitte quand même, l'erreur reste dans les logs
            logger.exception("webhooks.unexpected_error event=%s type=%s", outcome.event_id, outcome.event_type)
            return outcome.acknowledge("processing_error")

    async def _handle(self, outcome: WebhookOutcome, event: Dict[str, Any]) -> WebhookOutcome:
        # --- SignatureVerified -> Deduplicated
        try:
            first_delivery = await self.store.set_if_absent(
                self.store.key("webhook_event", outcome.event_id), str(int(self.clock())), self.dedup_ttl,
            )
        except RedisError:
            logger.exception("webhooks.dedup store error event=%s", outcome.event_id)
            return outcome.acknowledge("store_unavailable")
        if not first_delivery:
            logger.info("webhooks.duplicate event=%s type=%s", outcome.event_id, outcome.event_type)
            return outcome.acknowledge("duplicate_event")
        outcome.advance(WebhookState.DEDUPLICATED)

        if outcome.event_type not in HANDLED_EVENT_TYPES:
            logger.info("webhooks.ignored event=%s type=%s", outcome.event_id, outcome.event_type)
            return outcome.acknowledge("ignored_type")

        obj = ((event.get("data") or {}).get("object")) or {}
        if outcome.event_type in (PAYMENT_FAILED, CHARGE_FAILED):
            return await self._handle_failure(outcome, obj)

        # --- Deduplicated -> MetadataParsed
        intent_id = str(obj.get("id") or "")
        try:
            meta = parse_order_metadata(obj.get("metadata") or {})
        except MetadataError as e:
            logger.error(
                "webhooks.metadata_invalid event=%s intent=%s missing=%s",
                outcome.event_id, intent_id, ",".join(e.missing),
            )
            return outcome.acknowledge("metadata_invalid")
        outcome.advance(WebhookState.METADATA_PARSED)

        event_env = config.ENVIRONMENT_ALIASES.get(meta.environment.strip().lower(), "")
        if event_env != self.environment:
            logger.info(
                "webhooks.skip event=%s intent=%s skipped: environment mismatch (event=%s processor=%s)",
                outcome.event_id, intent_id, meta.environment or "<none>", self.environment,
            )
            return outcome.acknowledge("skipped_environment")

        if outcome.event_type == PROCESSING and not self._is_ach(obj, meta):
            logger.info("webhooks.processing non-ACH intent=%s, waiting for succeeded", intent_id)
            return outcome.acknowledge("ignored_processing")

        # --- MetadataParsed -> OrderDispatched
        if self.order_client is None or not self.order_client.is_configured:
            logger.error("webhooks.dispatch order client not configured intent=%s", intent_id)
            return outcome.acknowledge("dispatch_unconfigured")

        guard_prefix = "ach_pending" if outcome.event_type == PROCESSING else "order"
        guard_key = self.store.key(guard_prefix, intent_id)
        try:
            if not await self.store.set_if_absent(guard_key, outcome.event_id, self.dedup_ttl):
                logger.info("webhooks.duplicate_payment event=%s intent=%s", outcome.event_id, intent_id)
                return outcome.acknowledge("duplicate_payment")
        except RedisError:
            logger.exception("webhooks.order_guard store error intent=%s", intent_id)
            return outcome.acknowledge("store_unavailable")

        task = asyncio.create_task(self._dispatch(outcome.event_type, obj, meta, guard_key))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        try:
            outcome.result = await asyncio.wait_for(asyncio.shield(task), timeout=self.dispatch_wait)
        except asyncio.TimeoutError:
            logger.warning("webhooks.dispatch still running intent=%s, accepted for async processing", intent_id)
            return outcome.acknowledge("dispatch_pending")
        outcome.advance(WebhookState.ORDER_DISPATCHED)
        return outcome.acknowledge("order_dispatched" if outcome.result else "dispatch_failed")

    def _is_ach(self, obj: Dict[str, Any], meta: OrderMetadata) -> bool:
        types = obj.get("payment_method_types")
        if not isinstance(types, list):
            types = []
        return "us_bank_account" in types or meta.payment_method == "us_bank_account"

    async def _dispatch(self, event_type: str, obj: Dict[str, Any], meta: OrderMetadata, guard_key: str) -> Optional[Dict[str, Any]]:
        """Crée/complète la commande. Renvoie None (après log) en cas d'échec."""
        intent_id = str(obj.get("id") or "")
        try:
            amount = int(obj.get("amount_received") or obj.get("amount") or 0)
            if event_type == PROCESSING:
                return await orders_service.create_pending_ach_order(
                    self.order_client, self.store, meta, intent_id=intent_id, environment=self.environment,
                )
            pending = await orders_service.pending_ach_draft(self.store, intent_id)
            if pending:
                return await orders_service.complete_ach_order(self.order_client, self.store, pending, intent_id=intent_id)
            return await orders_service.create_paid_order(
                self.order_client, meta, intent_id=intent_id, amount=amount, environment=self.environment,
            )
        except Exception:
            logger.exception("orders.dispatch failed intent=%s type=%s", intent_id, event_type)
            try:
                # Libère le verrou pour permettre un rejeu manuel
                await self.store.delete(guard_key)
            except RedisError:
                logger.exception("orders.dispatch guard release failed intent=%s", intent_id)
            return None

    async def _handle_failure(self, outcome: WebhookOutcome, obj: Dict[str, Any]) -> WebhookOutcome:
        if outcome.event_type == CHARGE_FAILED:
            intent_id = str(obj.get("payment_intent") or "")
        else:
            intent_id = str(obj.get("id") or "")
        error = obj.get("last_payment_error") or {}
        reason = obj.get("failure_message") or (error.get("message") if isinstance(error, dict) else "") or ""
        logger.warning("webhooks.payment_failed event=%s intent=%s reason=%s", outcome.event_id, intent_id, reason or "<unknown>")
        if self.order_client is None or not intent_id:
            return outcome.acknowledge("payment_failed")
        try:
            cancelled = await orders_service.cancel_ach_order(self.order_client, self.store, intent_id=intent_id, reason=reason)
        except (ShopifyError, RedisError):
            logger.exception("orders.ach_cancel failed intent=%s", intent_id)
            return outcome.acknowledge("payment_failed")
        if cancelled is not None:
            outcome.advance(WebhookState.ORDER_DISPATCHED)
            return outcome.acknowledge("ach_cancelled")
        return outcome.acknowledge("payment_failed")

    async def drain(self) -> None:
        """Attend les dispatchs encore en vol (arrêt propre)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
