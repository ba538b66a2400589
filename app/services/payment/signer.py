"""
X-VERIFY checksums for the PhonePe gateway.

The gateway authenticates each request by recomputing
``sha256(payload + path + salt_key)`` on its side and comparing it with the
``X-VERIFY`` header, so the payload passed here must be byte-for-byte the
string that goes on the wire.
"""

import hashlib
import hmac

PAY_PATH = "/pg/v1/pay"
STATUS_PATH_TEMPLATE = "/pg/v1/status/{merchant_id}/{merchant_transaction_id}"
SEPARATOR = "###"


def compute_checksum(payload: str, path: str, salt_key: str, salt_index: str) -> str:
    """
    Return ``sha256hex(payload + path + salt_key) + "###" + salt_index``.

    Args:
        payload: Exact string transmitted (base64 envelope, or empty for GETs)
        path: Gateway endpoint path, e.g. ``/pg/v1/pay``
        salt_key: Shared secret
        salt_index: Index of the shared secret
    """
    digest = hashlib.sha256(f"{payload}{path}{salt_key}".encode("utf-8")).hexdigest()
    return f"{digest}{SEPARATOR}{salt_index}"


def status_path(merchant_id: str, merchant_transaction_id: str) -> str:
    return STATUS_PATH_TEMPLATE.format(
        merchant_id=merchant_id,
        merchant_transaction_id=merchant_transaction_id,
    )


def status_checksum(
    merchant_id: str,
    merchant_transaction_id: str,
    salt_key: str,
    salt_index: str,
) -> str:
    """Checksum for the status-check GET, which signs the path alone."""
    return compute_checksum(
        "",
        status_path(merchant_id, merchant_transaction_id),
        salt_key,
        salt_index,
    )


def verify_checksum(
    x_verify: str,
    payload: str,
    salt_key: str,
    salt_index: str,
    path: str = "",
) -> bool:
    """
    Check an X-VERIFY value received from the gateway.

    Server-to-server callbacks are signed over the base64 ``response``
    with no path. Comparison is constant time.
    """
    if not x_verify or SEPARATOR not in x_verify:
        return False
    expected = compute_checksum(payload, path, salt_key, salt_index)
    return hmac.compare_digest(expected.encode("utf-8"), x_verify.strip().encode("utf-8"))
