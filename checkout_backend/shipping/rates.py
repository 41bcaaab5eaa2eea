"""
Tables statiques de livraison (montants en centimes).
"""
from typing import Dict, Tuple

DEFAULT_ITEM_WEIGHT_LBS = "0.5"
WEIGHT_STEP_LBS = 2
FREE_SHIPPING_THRESHOLD = 10000
SPECIAL_HANDLING_SURCHARGE = 500

ONEBOX_CASE_SIZE = 10
ONEBOX_CASE_PRICE = 2500

WEST_COAST, CENTRAL, EAST_COAST, REMOTE = 1, 2, 3, 4
DEFAULT_ZONE = EAST_COAST

ZONE_NAMES: Dict[int, str] = {
    WEST_COAST: "West Coast",
    CENTRAL: "Central",
    EAST_COAST: "East Coast",
    REMOTE: "Alaska, Hawaii & Puerto Rico",
}

STATE_ZONES: Dict[str, int] = {}
for _zone, _states in (
    (WEST_COAST, "CA OR WA NV"),
    (CENTRAL, "AZ UT CO NM TX OK KS NE SD ND MN IA MO AR LA WI IL MS MI IN KY TN AL OH"),
    (EAST_COAST, "WV VA NC SC GA FL MD DE PA NJ NY CT RI MA VT NH ME"),
    (REMOTE, "AK HI PR"),
):
    STATE_ZONES.update({state: _zone for state in _states.split()})

# zone -> méthode -> tarif de base
BASE_RATES: Dict[int, Dict[str, int]] = {
    WEST_COAST: {"standard": 1200, "express": 2800, "overnight": 4500},
    CENTRAL: {"standard": 1000, "express": 2500, "overnight": 4200},
    EAST_COAST: {"standard": 800, "express": 2200, "overnight": 3800},
    REMOTE: {"standard": 2000, "express": 4500, "overnight": 6500},
}

# méthode -> (id, libellé, délai en jours ouvrés)
METHODS: Dict[str, Tuple[str, str, str]] = {
    "standard": ("standard_shipping", "Standard Shipping (5-7 business days)", "5-7"),
    "express": ("express_shipping", "Express Shipping (2-3 business days)", "2-3"),
    "overnight": ("overnight_shipping", "Overnight Shipping (1 business day)", "1"),
}
DEFAULT_METHOD = "standard"
