"""
Per-provider webhook handling: signature checks and payload normalization.

Each provider signs its notifications with an HMAC keyed by a merchant secret
taken from settings. A provider without a configured secret rejects every
webhook.
"""
import hashlib
import hmac
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote_plus

from core.config import settings
from core.errors import AuthError, ValidationError


PROVIDERS = ("vnpay", "momo", "bank_transfer")

# Field order of the MoMo IPN raw signature string.
MOMO_SIGNATURE_FIELDS = (
    "accessKey", "amount", "extraData", "message", "orderId", "orderInfo",
    "orderType", "partnerCode", "payType", "requestId", "responseTime",
    "resultCode", "transId",
)

VNPAY_HASH_FIELDS = ("vnp_SecureHash", "vnp_SecureHashType")


@dataclass
class NormalizedWebhook:
    transaction_id: str
    status: str  # completed | failed
    amount: Optional[Decimal]
    error_message: Optional[str] = None


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _hmac_hex(secret: str, message: str, digestmod) -> str:
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), digestmod).hexdigest()


def _matches(expected: str, given: Optional[str]) -> bool:
    if not given:
        return False
    return hmac.compare_digest(expected.lower(), given.strip().lower())


def vnpay_sign_data(payload: Dict[str, Any]) -> str:
    pairs = sorted(
        (k, _stringify(v))
        for k, v in payload.items()
        if k.startswith("vnp_") and k not in VNPAY_HASH_FIELDS and v not in (None, "")
    )
    return "&".join(f"{k}={quote_plus(v)}" for k, v in pairs)


def momo_sign_data(payload: Dict[str, Any], access_key: str) -> str:
    values = dict(payload)
    values["accessKey"] = access_key
    return "&".join(f"{field}={_stringify(values.get(field))}" for field in MOMO_SIGNATURE_FIELDS)


def bank_transfer_sign_data(payload: Dict[str, Any]) -> str:
    return "&".join(f"{k}={_stringify(payload[k])}" for k in sorted(payload))


def sign(provider: str, payload: Dict[str, Any]) -> str:
    """Compute the signature a provider is expected to send for ``payload``."""
    if provider == "vnpay":
        return _hmac_hex(settings.VNPAY_HASH_SECRET, vnpay_sign_data(payload), hashlib.sha512)
    if provider == "momo":
        return _hmac_hex(settings.MOMO_SECRET_KEY, momo_sign_data(payload, settings.MOMO_ACCESS_KEY), hashlib.sha256)
    if provider == "bank_transfer":
        return _hmac_hex(settings.BANK_TRANSFER_WEBHOOK_SECRET, bank_transfer_sign_data(payload), hashlib.sha256)
    raise ValidationError(f"Unsupported payment provider: {provider}")


def _secret_for(provider: str) -> str:
    return {
        "vnpay": settings.VNPAY_HASH_SECRET,
        "momo": settings.MOMO_SECRET_KEY,
        "bank_transfer": settings.BANK_TRANSFER_WEBHOOK_SECRET,
    }[provider]


def verify_signature(provider: str, payload: Dict[str, Any], signature: Optional[str]) -> None:
    """Raise AuthError unless ``signature`` is the provider's HMAC of ``payload``."""
    if provider not in PROVIDERS:
        raise ValidationError(f"Unsupported payment provider: {provider}")
    if not _secret_for(provider):
        raise AuthError(f"Webhook secret for {provider} is not configured")

    if provider == "vnpay":
        signature = signature or _stringify(payload.get("vnp_SecureHash")) or None
    elif provider == "momo":
        signature = signature or _stringify(payload.get("signature")) or None
        payload = {k: v for k, v in payload.items() if k != "signature"}

    if not _matches(sign(provider, payload), signature):
        raise AuthError("Invalid webhook signature")


def _require_reference(value: Any, field: str) -> str:
    ref = _stringify(value).strip()
    if not ref:
        raise ValidationError(f"Webhook payload is missing {field}")
    return ref


def normalize_vnpay(payload: Dict[str, Any]) -> NormalizedWebhook:
    code = _stringify(payload.get("vnp_ResponseCode"))
    amount = _to_decimal(payload.get("vnp_Amount"))
    if amount is not None:
        # VNPay reports amounts multiplied by 100
        amount = amount / 100
    ok = code == "00"
    return NormalizedWebhook(
        transaction_id=_require_reference(payload.get("vnp_TxnRef"), "vnp_TxnRef"),
        status="completed" if ok else "failed",
        amount=amount,
        error_message=None if ok else f"VNPay error code: {code}",
    )


def normalize_momo(payload: Dict[str, Any]) -> NormalizedWebhook:
    code = payload.get("resultCode")
    ok = _stringify(code) == "0"
    return NormalizedWebhook(
        transaction_id=_require_reference(payload.get("orderId"), "orderId"),
        status="completed" if ok else "failed",
        amount=_to_decimal(payload.get("amount")),
        error_message=None if ok else f"MoMo error code: {code}",
    )


def normalize_bank_transfer(payload: Dict[str, Any]) -> NormalizedWebhook:
    ok = payload.get("status") == "completed"
    return NormalizedWebhook(
        transaction_id=_require_reference(payload.get("reference"), "reference"),
        status="completed" if ok else "failed",
        amount=_to_decimal(payload.get("amount")),
        error_message=None if ok else f"Bank transfer status: {payload.get('status')}",
    )


NORMALIZERS: Dict[str, Callable[[Dict[str, Any]], NormalizedWebhook]] = {
    "vnpay": normalize_vnpay,
    "momo": normalize_momo,
    "bank_transfer": normalize_bank_transfer,
}


def normalize(provider: str, payload: Dict[str, Any]) -> NormalizedWebhook:
    try:
        normalizer = NORMALIZERS[provider]
    except KeyError:
        raise ValidationError(f"Unsupported payment provider: {provider}")
    return normalizer(payload)
