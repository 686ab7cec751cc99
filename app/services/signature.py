"""
Webhook signature verification.

Paystack signs every webhook with HMAC-SHA512 over the raw request body, keyed
with the account secret, and sends the hex digest in `x-paystack-signature`.
The digest must be computed over the bytes exactly as received: parsing and
re-serializing the JSON changes whitespace and key order and breaks the match.
"""
import hashlib
import hmac

from app.core.errors import AuthenticationError

SIGNATURE_HEADERS = ("x-paystack-signature", "x-signature")


def compute_signature(raw_body: bytes, shared_secret: str) -> str:
    return hmac.new(shared_secret.encode(), raw_body, hashlib.sha512).hexdigest()


def verify_signature(raw_body: bytes, signature_header: str | None, shared_secret: str) -> bool:
    if not shared_secret or not signature_header:
        return False
    expected = compute_signature(raw_body, shared_secret)
    return hmac.compare_digest(expected.encode(), signature_header.strip().lower().encode())


def require_valid_signature(raw_body: bytes, signature_header: str | None, shared_secret: str) -> None:
    if not verify_signature(raw_body, signature_header, shared_secret):
        raise AuthenticationError("Invalid webhook signature")


def signature_from_headers(headers) -> str | None:
    for name in SIGNATURE_HEADERS:
        value = headers.get(name)
        if value:
            return value
    return None
