"""
Sign-In with Ethereum (EIP-4361) message handling.

The server hands out a nonce, the wallet signs a plain-text EIP-4361 message
with ``personal_sign``, and the server checks that:
  - the message names the claimed address and carries the stored nonce;
  - the message is inside its validity window (Expiration Time / Not Before);
  - the signature recovers to that address.

Parsing and verification use the ``siwe`` package; signer recovery for
diagnostics uses eth-account (EIP-191 ``encode_defunct``).
"""

from __future__ import annotations

from datetime import datetime, timezone

import siwe
from eth_account import Account
from eth_account.messages import encode_defunct
from siwe import SiweMessage

from smp.errors import AppError, ErrorCode


def generate_nonce() -> str:
    """Alphanumeric nonce (EIP-4361 requires at least 8 characters)."""
    return siwe.generate_nonce()


def build_message(
    domain: str,
    address: str,
    nonce: str,
    chain_id: int,
    uri: str | None = None,
    statement: str = "Sign in to Shadow Monarch's Path.",
    issued_at: datetime | None = None,
    expiration_time: datetime | None = None,
) -> str:
    """Render an EIP-4361 message (what the web client asks the wallet to sign)."""
    fields: dict[str, object] = {
        "domain": domain,
        "address": address,
        "statement": statement,
        "uri": uri or f"https://{domain}",
        "version": "1",
        "chain_id": chain_id,
        "nonce": nonce,
        "issued_at": _iso(issued_at or datetime.now(timezone.utc)),
    }
    if expiration_time is not None:
        fields["expiration_time"] = _iso(expiration_time)
    return SiweMessage(**fields).prepare_message()


def _iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_message(message: str) -> SiweMessage:
    """Parse an EIP-4361 message. Raises ValueError when malformed."""
    return SiweMessage.from_message(message=message)


def recover_signer(message: str, signature: str) -> str:
    """Return the lowercase address that produced ``signature`` over ``message``."""
    signable = encode_defunct(text=message)
    return Account.recover_message(signable, signature=signature).lower()


def verify_wallet_signature(address: str, message: str, signature: str, expected_nonce: str) -> str:
    """
    Check a signed login message against the claimed address and stored nonce.

    Returns:
        The verified lowercase address.

    Raises:
        AppError: NONCE_MISMATCH or INVALID_SIGNATURE (also for expired or
            not-yet-valid messages).
    """
    try:
        parsed = parse_message(message)
    except ValueError as e:
        raise AppError.bad_request(ErrorCode.INVALID_SIGNATURE, f"Malformed sign-in message: {e}") from e

    if parsed.address.lower() != address.lower():
        raise AppError.bad_request(
            ErrorCode.INVALID_SIGNATURE,
            "Address in message does not match provided address",
        )

    try:
        parsed.verify(signature, nonce=expected_nonce)
    except siwe.NonceMismatch as e:
        raise AppError.bad_request(ErrorCode.NONCE_MISMATCH, "Invalid nonce in message") from e
    except siwe.ExpiredMessage as e:
        raise AppError.bad_request(ErrorCode.INVALID_SIGNATURE, "Sign-in message has expired") from e
    except siwe.NotYetValidMessage as e:
        raise AppError.bad_request(ErrorCode.INVALID_SIGNATURE, "Sign-in message is not yet valid") from e
    except Exception as e:
        raise AppError.bad_request(ErrorCode.INVALID_SIGNATURE, "Invalid signature") from e

    return parsed.address.lower()
