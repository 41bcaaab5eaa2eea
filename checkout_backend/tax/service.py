"""
Calcul de la taxe de vente (montants en dollars, arrondi au cent supérieur à .5).
- stateTax / localTax: part état / part locale estimée, sur le sous-total
- totalTax: taux combiné appliqué à la base taxable (sous-total + livraison si l'état taxe la livraison)
- État inconnu mais bien formé: taxe nulle
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Dict

from checkout_backend.errors import InvalidInput
from checkout_backend.utils.money import round_half_up
from checkout_backend.utils.validators import is_valid_state_code, normalize_state_code
from . import rates

ZERO = Decimal("0")


def _amount(value: Any, message: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise InvalidInput(message)
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidInput(message)
    if not amount.is_finite() or amount < 0:
        raise InvalidInput(message)
    return amount


def calculate_tax(subtotal: Any, shipping: Any = 0, state: Any = None) -> Dict[str, Any]:
    subtotal_amount = _amount(subtotal, "Invalid subtotal")
    shipping_amount = ZERO if shipping in (None, "") else _amount(shipping, "Invalid shipping amount")

    state_code = normalize_state_code(state)
    if state_code and not is_valid_state_code(state_code):
        raise InvalidInput("Invalid state code")

    state_rate = rates.STATE_TAX_RATES.get(state_code, ZERO)
    local_rate = rates.ESTIMATED_LOCAL_TAX.get(state_code, ZERO)
    combined = state_rate + local_rate
    taxes_shipping = state_code in rates.STATES_THAT_TAX_SHIPPING
    taxable = subtotal_amount + (shipping_amount if taxes_shipping else ZERO)

    return {
        "stateTax": float(round_half_up(subtotal_amount * state_rate)),
        "localTax": float(round_half_up(subtotal_amount * local_rate)),
        "totalTax": float(round_half_up(taxable * combined)),
        "taxRate": float(combined),
        "taxableAmount": float(round_half_up(taxable)),
        "breakdown": {
            "stateRate": float(state_rate),
            "localRate": float(local_rate),
            "combinedRate": float(combined),
            "taxesShipping": taxes_shipping,
        },
    }
