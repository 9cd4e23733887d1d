"""Phone number normalisation and mobile network detection."""

from __future__ import annotations

import re
from typing import Optional

COUNTRY_CODES = {"KES": "254", "GHS": "233", "NGN": "234", "UGX": "256", "TZS": "255"}

_KENYA_NETWORKS = (
    ("Safaricom", ("70", "71", "72", "74", "11")),
    ("Airtel", ("73", "75", "10")),
    ("Telkom", ("77",)),
    ("Equitel", ("763", "764", "765")),
)

_GHANA_NETWORKS = (
    ("MTN", ("24", "54", "55", "59", "25", "53")),
    ("Vodafone", ("20", "50")),
    ("AirtelTigo", ("26", "27", "56", "57")),
    ("Glo", ("23",)),
)


def digits_only(value: str) -> str:
    return re.sub(r"\D", "", value or "")


def normalize_phone(number: str, currency: str) -> str:
    """Return the number in international form without the leading plus."""
    clean = digits_only(number)
    code = COUNTRY_CODES.get(currency.upper())
    if code is None or clean.startswith(code):
        return clean
    if clean.startswith("0"):
        return code + clean[1:]
    return code + clean


def detect_network(number: str, currency: str) -> Optional[str]:
    currency = currency.upper()
    if currency == "KES":
        table = _KENYA_NETWORKS
    elif currency == "GHS":
        table = _GHANA_NETWORKS
    else:
        return None
    subscriber = normalize_phone(number, currency)[len(COUNTRY_CODES[currency]):]
    # longer prefixes first so Equitel wins over a two-digit match
    for name, prefixes in sorted(table, key=lambda item: -max(len(p) for p in item[1])):
        if subscriber.startswith(prefixes):
            return name
    return None
