"""Request signing and credential injection helpers."""

from __future__ import annotations

import base64
import logging
import time
from typing import Callable, Dict, List, Optional

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from .compiler import security_key
from .config import IntegrationEnvironment
from .errors import SignatureError
from .models import SecurityParameter


logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-cf-signature"
CLIENT_ID_HEADER = "x-client-id"


class RequestSigner:
    """Encrypts `<client_id>.<unix_timestamp>` with the integration's RSA public key."""

    def __init__(self, public_key_pem: str, clock: Callable[[], float] = time.time) -> None:
        self.public_key_pem = public_key_pem
        self.clock = clock

    def sign(self, client_id: str) -> str:
        try:
            public_key = serialization.load_pem_public_key(self.public_key_pem.encode("utf-8"))
        except (ValueError, TypeError) as exc:
            raise SignatureError(f"Invalid public key: {exc}") from exc
        if not isinstance(public_key, rsa.RSAPublicKey):
            raise SignatureError("Public key is not an RSA key")

        data = f"{client_id}.{int(self.clock())}".encode("utf-8")
        try:
            encrypted = public_key.encrypt(
                data,
                padding.OAEP(mgf=padding.MGF1(algorithm=hashes.SHA1()), algorithm=hashes.SHA1(), label=None),
            )
        except ValueError as exc:
            raise SignatureError(f"Encryption failed: {exc}") from exc
        return base64.b64encode(encrypted).decode("ascii")


def signature_headers(
    environment: IntegrationEnvironment, clock: Callable[[], float] = time.time
) -> Dict[str, str]:
    """Signature header for integrations that require signing; empty on failure."""
    if not environment.requires_signature:
        return {}
    try:
        if not environment.signing_public_key:
            raise SignatureError("No public key configured")
        signer = RequestSigner(environment.signing_public_key, clock)
        return {SIGNATURE_HEADER: signer.sign(environment.header.get(CLIENT_ID_HEADER, ""))}
    except SignatureError as exc:
        logger.error("Error generating signature: %s", exc)
        return {}


class CredentialInjector:
    def __init__(self, environment: IntegrationEnvironment) -> None:
        self.environment = environment

    def build_auth(
        self, security: List[SecurityParameter]
    ) -> tuple[Dict[str, str], Dict[str, str], Dict[str, str]]:
        headers: Dict[str, str] = {}
        query: Dict[str, str] = {}
        cookies: Dict[str, str] = {}
        targets = {"header": headers, "query": query, "cookie": cookies}

        for parameter in security:
            target = targets.get(parameter.location)
            if target is None:
                continue
            value = self._resolve(parameter)
            if value is None:
                continue
            if parameter.type == "http" and parameter.scheme == "bearer":
                headers["Authorization"] = f"Bearer {value}"
            else:
                target[parameter.name] = value

        # static values from the integration record win over composite keys
        for parameter in security:
            static_value = self.environment.location(parameter.location).get(parameter.name)
            if static_value and parameter.location in targets:
                targets[parameter.location][parameter.name] = static_value

        return headers, query, cookies

    def _resolve(self, parameter: SecurityParameter) -> Optional[str]:
        key = security_key(parameter)
        return self.environment.secret(key) if key else None
