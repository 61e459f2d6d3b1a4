# services/identity.py
import logging
import time

from fastapi import Request
from google.auth.transport import requests
from google.oauth2 import id_token

logger = logging.getLogger("api.identity")

FIREBASE_ISSUER_PREFIX = "https://securetoken.google.com/"


class IdentityVerificationError(Exception):
    """Raised for any credential the trust authority does not vouch for."""


class FirebaseIdentityVerifier:
    """Verifies Firebase ID tokens against Google's published signing certs.

    ``verify`` returns ``{"uid", "email", "claims"}`` or raises
    IdentityVerificationError; callers never see why a token was rejected.
    """

    def __init__(self, project_id: str, clock_skew_sec: int = 60):
        if not project_id:
            raise RuntimeError("FIREBASE_PROJECT_ID not set")
        self.project_id = project_id
        self.clock_skew_sec = clock_skew_sec
        self.issuer = f"{FIREBASE_ISSUER_PREFIX}{project_id}"
        self._request = requests.Request()

    def verify(self, token: str) -> dict:
        if not token:
            raise IdentityVerificationError("Missing token")

        try:
            payload = id_token.verify_firebase_token(
                token,
                self._request,
                audience=self.project_id,
                clock_skew_in_seconds=self.clock_skew_sec,
            )
        except Exception as exc:
            logger.info("identity_token_rejected reason=%s", exc.__class__.__name__)
            raise IdentityVerificationError(str(exc)) from exc

        if not payload:
            raise IdentityVerificationError("Empty token payload")

        issuer = str(payload.get("iss") or "").strip()
        if issuer != self.issuer:
            raise IdentityVerificationError("Invalid token issuer")

        now = int(time.time())
        auth_time = int(payload.get("auth_time") or 0)
        if auth_time and auth_time > now + self.clock_skew_sec:
            raise IdentityVerificationError("Token auth_time is in the future")

        uid = str(payload.get("sub") or payload.get("user_id") or "").strip()
        if not uid or len(uid) > 128:
            raise IdentityVerificationError("Invalid token subject")

        email = str(payload.get("email") or "").strip()
        if not email:
            raise IdentityVerificationError("Email not found in token")

        return {"uid": uid, "email": email, "claims": payload}


def get_identity_verifier(request: Request):
    return request.app.state.identity_verifier
