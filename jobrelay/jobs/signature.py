"""Verification of the ``Upstash-Signature`` header sent with every delivery.

The header is an HS256 JWT signed with one of two signing keys. Two keys are
accepted at once so deliveries keep flowing while the keys are rotated. The
``body`` claim is the unpadded base64url SHA-256 digest of the request body.
"""
import base64
import hashlib
from typing import Optional

from jose import JWTError, jwt

from .. import config
from .errors import InvalidSignatureError

ISSUER = "Upstash"
SIGNATURE_HEADER = "Upstash-Signature"


def body_digest(body: bytes) -> str:
    return base64.urlsafe_b64encode(hashlib.sha256(body).digest()).decode("ascii").rstrip("=")


class SignatureReceiver:
    def __init__(
        self,
        current_signing_key: str = config.QSTASH_CURRENT_SIGNING_KEY,
        next_signing_key: str = config.QSTASH_NEXT_SIGNING_KEY,
    ):
        self.current_signing_key = current_signing_key
        self.next_signing_key = next_signing_key

    def verify(
        self,
        signature: Optional[str],
        body: bytes,
        url: Optional[str] = None,
        clock_tolerance: int = 0,
    ) -> None:
        """Raise InvalidSignatureError unless ``signature`` matches ``body``."""
        if not signature:
            raise InvalidSignatureError("Missing signature")

        keys = [k for k in (self.current_signing_key, self.next_signing_key) if k]
        if not keys:
            raise InvalidSignatureError("No signing keys configured")

        last_error: Optional[InvalidSignatureError] = None
        for key in keys:
            try:
                self._verify_with_key(key, signature, body, url, clock_tolerance)
                return
            except InvalidSignatureError as exc:
                last_error = exc
        raise last_error

    def _verify_with_key(
        self,
        key: str,
        signature: str,
        body: bytes,
        url: Optional[str],
        clock_tolerance: int,
    ) -> None:
        try:
            claims = jwt.decode(
                signature,
                key,
                algorithms=["HS256"],
                issuer=ISSUER,
                options={
                    "leeway": clock_tolerance,
                    "require_exp": True,
                    "require_nbf": True,
                    "require_iss": True,
                    "require_sub": True,
                },
            )
        except JWTError as exc:
            raise InvalidSignatureError(str(exc)) from exc

        if url is not None and claims.get("sub") != url:
            raise InvalidSignatureError("Invalid subject")

        claimed = str(claims.get("body", "")).rstrip("=")
        if claimed != body_digest(body):
            raise InvalidSignatureError("Invalid body hash")
