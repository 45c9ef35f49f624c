import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from uuid6 import uuid7

from rehearsal import settings
from rehearsal.models.identity_models import IdentityModel, SignInModel
from rehearsal.services.document_store import DocumentStore

IDENTITIES_KEY = "identities"

security = HTTPBearer()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


class IdentityAuthentication:
    """Anonymous identities for rehearsal participants.

    A token is ``<identity_id>.<secret>``. Only a peppered hash of the secret
    is kept, in the ``identities`` document of the shared store.
    """

    def __init__(
        self,
        store: DocumentStore,
        pepper: str = settings.pepper_data,
        ttl_hours: float = settings.identity_ttl_hours,
    ):
        self.store = store
        self.pepper = pepper
        self.ttl = timedelta(hours=ttl_hours)

    def _hash_secret(self, secret: str) -> str:
        return hashlib.sha256((secret + self.pepper).encode()).hexdigest()

    async def sign_in_anonymously(self) -> SignInModel:
        """Issue a new identity and the token that proves it."""
        identity_id = uuid7()
        secret = secrets.token_urlsafe(32)
        record = {
            "token_hash": self._hash_secret(secret),
            "issued_at": datetime.now(timezone.utc).isoformat(),
        }

        def register(document: Optional[dict]) -> dict:
            return {**(document or {}), str(identity_id): record}

        await self.store.transact(IDENTITIES_KEY, register)
        logging.info(f"Signed in anonymous identity {identity_id}")
        return SignInModel(identity_id=identity_id, token=f"{identity_id}.{secret}")

    async def check_token(self, token: str) -> IdentityModel:
        """Resolve a bearer token to its identity.

        Raises:
            HTTPException: The token is malformed, unknown or expired
        """
        identity_part, _, secret = token.partition(".")
        try:
            identity_id = UUID(identity_part)
        except ValueError:
            raise _unauthorized("Invalid token")

        identities = await self.store.get(IDENTITIES_KEY) or {}
        record = identities.get(str(identity_id))
        if record is None or not secret:
            raise _unauthorized("Unknown identity")
        if not secrets.compare_digest(self._hash_secret(secret), record["token_hash"]):
            raise _unauthorized("Invalid token")

        issued_at = datetime.fromisoformat(record["issued_at"])
        if datetime.now(timezone.utc) - issued_at > self.ttl:
            raise _unauthorized("Expired token")
        return IdentityModel(identity_id=identity_id, issued_at=issued_at)

    async def delete_expired_identities(self, now: Optional[datetime] = None) -> List[str]:
        """Forget identities older than the TTL and return their ids."""
        now = now or datetime.now(timezone.utc)
        expired: List[str] = []

        def purge(document: Optional[dict]) -> Optional[dict]:
            expired.clear()
            if not document:
                return document
            for identity_id, record in document.items():
                if now - datetime.fromisoformat(record["issued_at"]) > self.ttl:
                    expired.append(identity_id)
            if not expired:
                return document
            return {identity_id: record for identity_id, record in document.items() if identity_id not in expired}

        await self.store.transact(IDENTITIES_KEY, purge)
        if expired:
            logging.info(f"Deleted {len(expired)} expired identities")
        return list(expired)


async def check_identity(
    request: Request, credentials: HTTPAuthorizationCredentials = Depends(security)
) -> IdentityModel:
    """FastAPI dependency resolving the caller's identity."""
    identity_auth: IdentityAuthentication = request.app.state.identity_auth
    return await identity_auth.check_token(credentials.credentials)
