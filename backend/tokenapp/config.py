# backend/tokenapp/config.py
from __future__ import annotations
import os


def _int_env(name: str, default: int) -> int:
    return int(os.environ.get(name, str(default)))


def _float_env(name: str, default: float) -> float:
    return float(os.environ.get(name, str(default)))


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/tokenapp.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///tokenapp.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Identifier periods (MMYY / DDMMYY) are taken in the business timezone
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "Asia/Jakarta")
    CUSTOMER_ID_PREFIX = "SAI"
    ORDER_ID_PREFIX = "TRN"

    # Purchase rules (Rupiah)
    MIN_NOMINAL = _int_env("MIN_NOMINAL", 10_000)
    MAX_NOMINAL = _int_env("MAX_NOMINAL", 1_000_000)
    MIN_PAYMENT = _int_env("MIN_PAYMENT", 10_000)
    NOMINAL_GRANULARITY = {
        "ELECTRICITY": 5_000,
        "WATER": 1_000,
        "GAS": 1_000,
        "SOLAR": 1_000,
    }

    # Loyalty points
    POINTS_CAP = _int_env("POINTS_CAP", 500)
    POINTS_CONVERSION_RATE = _int_env("POINTS_CONVERSION_RATE", 1)

    # Seed rows for the voucher table (code -> fixed Rupiah discount)
    DEFAULT_VOUCHERS = {
        "DISKON10K": 10_000,
        "HEMAT5K": 5_000,
    }

    # Payment gateway (Midtrans Snap compatible)
    PAYMENT_GATEWAY_URL = os.environ.get(
        "PAYMENT_GATEWAY_URL",
        "https://app.sandbox.midtrans.com/snap/v1/transactions",
    )
    PAYMENT_GATEWAY_SERVER_KEY = os.environ.get("PAYMENT_GATEWAY_SERVER_KEY", "")
    PAYMENT_GATEWAY_TIMEOUT = _float_env("PAYMENT_GATEWAY_TIMEOUT", 15.0)
    PAYMENT_FINISH_URL = os.environ.get("PAYMENT_FINISH_URL", "http://localhost:9002/my-tokens")

    # Meter vending API
    VENDING_API_URL = os.environ.get("VENDING_API_URL", "")
    VENDING_COMPANY_NAME = os.environ.get("VENDING_COMPANY_NAME", "")
    VENDING_USERNAME = os.environ.get("VENDING_USERNAME", "")
    VENDING_PASSWORD = os.environ.get("VENDING_PASSWORD", "")
    VENDING_TIMEOUT = _float_env("VENDING_TIMEOUT", 30.0)
    # A vend claim older than this is treated as abandoned and may be taken over
    VENDING_CLAIM_SECONDS = _int_env("VENDING_CLAIM_SECONDS", 120)
