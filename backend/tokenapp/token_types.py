"""
Token types sold by the retailer and their single-letter identifier codes.

The letter codes appear in customer and order identifiers
(``SAI-0924-L-0007``, ``TRN-U-070624-A-0002``).
"""

ELECTRICITY = "ELECTRICITY"
WATER = "WATER"
GAS = "GAS"
SOLAR = "SOLAR"

TYPE_CODES = {
    ELECTRICITY: "L",
    WATER: "A",
    GAS: "G",
    SOLAR: "S",
}

MIXED_CODE = "M"
UNKNOWN_CODE = "U"
DEFAULT_ORDER_CODE = "X"

LABELS = {
    ELECTRICITY: "Listrik",
    WATER: "Air",
    GAS: "Gas",
    SOLAR: "Solar",
}


def normalize_token_type(value: str | None) -> str:
    return (value or "").strip().upper()
