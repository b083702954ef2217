"""RS256 signing with service account JWK private keys."""

from __future__ import annotations

import json
import uuid
from typing import Any

import jwt
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from jwt.algorithms import RSAAlgorithm

from tenantctl.errors import ServiceAccountKeyError


def load_rsa_private_key(jwk: dict[str, Any]) -> RSAPrivateKey:
    if jwk.get("kty") != "RSA":
        raise ServiceAccountKeyError("service account JWK must have kty=RSA")
    try:
        key = RSAAlgorithm.from_jwk(json.dumps(jwk))
    except (jwt.exceptions.InvalidKeyError, KeyError, ValueError) as exc:
        raise ServiceAccountKeyError(f"invalid service account JWK: {exc}") from exc
    if not isinstance(key, RSAPrivateKey):
        raise ServiceAccountKeyError("service account JWK does not contain a private key")
    return key


def sign_rs256_jwt(claims: dict[str, Any], jwk: dict[str, Any]) -> str:
    key = load_rsa_private_key(jwk)
    headers = {"kid": jwk["kid"]} if isinstance(jwk.get("kid"), str) else None
    return jwt.encode(claims, key, algorithm="RS256", headers=headers)


def build_service_account_claims(*, service_account_id: str, audience: str, now: float) -> dict:
    return {
        "iss": service_account_id,
        "sub": service_account_id,
        "aud": audience,
        "exp": int(now) + 180,
        "jti": uuid.uuid4().hex,
    }
