"""
Pytest configuration loaded before anything imports the app.
Environment must be set here so core.config picks up test values.
"""
import os

os.environ["TESTING"] = "True"
os.environ["DEBUG"] = "False"
os.environ.setdefault("TIMEZONE", "UTC")
os.environ.setdefault("VNPAY_HASH_SECRET", "test-vnpay-secret")
os.environ.setdefault("MOMO_SECRET_KEY", "test-momo-secret")
os.environ.setdefault("MOMO_ACCESS_KEY", "test-momo-access")
os.environ.setdefault("BANK_TRANSFER_WEBHOOK_SECRET", "test-bank-secret")
