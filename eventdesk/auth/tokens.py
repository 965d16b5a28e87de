"""Signed, time-limited bearer tokens carrying an identity."""

from __future__ import annotations

from dataclasses import dataclass, replace

from itsdangerous import BadSignature, URLSafeTimedSerializer

TOKEN_SALT = 'eventdesk-auth'


@dataclass(frozen=True)
class Identity:
    uid: str
    email: str
    role_claim: str | None = None

    def with_role(self, role_claim: str | None) -> "Identity":
        return replace(self, role_claim=role_claim)


class TokenIdentityVerifier:
    """Issues and verifies tokens; expired, tampered and malformed all verify to None."""

    def __init__(self, secret_key: str, max_age: int = 3600):
        self.max_age = max_age
        self._serializer = URLSafeTimedSerializer(secret_key, salt=TOKEN_SALT)

    def issue(self, identity: Identity) -> str:
        return self._serializer.dumps({
            'uid': identity.uid,
            'email': identity.email,
            'role': identity.role_claim,
        })

    def verify(self, token: str | None) -> Identity | None:
        if not token:
            return None
        try:
            payload = self._serializer.loads(token, max_age=self.max_age)
        except BadSignature:
            return None
        if not isinstance(payload, dict):
            return None
        uid, email = payload.get('uid'), payload.get('email')
        if not isinstance(uid, str) or not isinstance(email, str):
            return None
        role = payload.get('role')
        return Identity(uid=uid, email=email, role_claim=role if isinstance(role, str) else None)


__all__ = ['Identity', 'TokenIdentityVerifier']
