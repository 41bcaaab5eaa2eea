"""
Accès au store pour la feature 'sessions'.
Une session = une clé JSON avec TTL; les paiements d'une session vivent
dans une liste séparée pour ne jamais réécrire l'enregistrement.
"""
import json
from typing import Any, Dict, List, Optional

from checkout_backend.store import CheckoutStore


# module checkout_backend.sessions.repository
def session_key(store: CheckoutStore, token: str) -> str:
    return store.key("session", token)

def intents_key(store: CheckoutStore, token: str) -> str:
    return store.key("session", token, "intents")

async def insert_session(store: CheckoutStore, record: Dict[str, Any], ttl_seconds: int) -> bool:
    """
    Pose la session si le token est libre (SET NX). False en cas de collision.
    """
    return await store.set_if_absent(session_key(store, record["sessionId"]), json.dumps(record), ttl_seconds)

async def fetch_session(store: CheckoutStore, token: str) -> Optional[Dict[str, Any]]:
    return await store.get_json(session_key(store, token))

async def delete_session(store: CheckoutStore, token: str) -> int:
    return await store.delete(session_key(store, token), intents_key(store, token))

async def append_payment_intent(store: CheckoutStore, token: str, intent_id: str, ttl_seconds: int) -> None:
    await store.append_to_list(intents_key(store, token), intent_id, ttl_seconds)

async def list_payment_intents(store: CheckoutStore, token: str) -> List[str]:
    return await store.get_list(intents_key(store, token))
