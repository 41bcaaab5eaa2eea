"""
Taux de taxe de vente US: taux d'état, estimation locale moyenne,
et états qui taxent la livraison.
"""
from decimal import Decimal
from typing import Dict, FrozenSet

STATE_TAX_RATES: Dict[str, Decimal] = {k: Decimal(v) for k, v in {
    "AL": "0.04", "AK": "0", "AZ": "0.056", "AR": "0.065", "CA": "0.0725",
    "CO": "0.029", "CT": "0.0635", "DE": "0", "FL": "0.06", "GA": "0.04",
    "HI": "0.04", "ID": "0.06", "IL": "0.0625", "IN": "0.07", "IA": "0.06",
    "KS": "0.065", "KY": "0.06", "LA": "0.0445", "ME": "0.055", "MD": "0.06",
    "MA": "0.0625", "MI": "0.06", "MN": "0.06875", "MS": "0.07", "MO": "0.04225",
    "MT": "0", "NE": "0.055", "NV": "0.0685", "NH": "0", "NJ": "0.06625",
    "NM": "0.05125", "NY": "0.04", "NC": "0.0475", "ND": "0.05", "OH": "0.0575",
    "OK": "0.045", "OR": "0", "PA": "0.06", "RI": "0.07", "SC": "0.06",
    "SD": "0.045", "TN": "0.07", "TX": "0.0625", "UT": "0.0485", "VT": "0.06",
    "VA": "0.043", "WA": "0.065", "WV": "0.06", "WI": "0.05", "WY": "0.04",
    "DC": "0.06",
}.items()}

ESTIMATED_LOCAL_TAX: Dict[str, Decimal] = {k: Decimal(v) for k, v in {
    "AL": "0.0514", "AK": "0.0143", "AZ": "0.0277", "AR": "0.0293", "CA": "0.0153",
    "CO": "0.0465", "LA": "0.05", "MO": "0.0391", "NY": "0.0449", "OK": "0.0442",
    "WA": "0.0278",
}.items()}

STATES_THAT_TAX_SHIPPING: FrozenSet[str] = frozenset(
    "AR CA CT DC FL GA HI IL IN KS KY MD MA MI MS NE NJ NM NY NC ND OH PA RI SC SD TN TX UT VT WA WV WI".split()
)
