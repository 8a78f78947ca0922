"""
Client-side authentication against the identity provider.

`FirebaseRestAuthClient` talks to the Identity Toolkit REST API that backs
Firebase Authentication; `InMemoryAuthClient` is a test double.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional, Protocol

import requests
from dacite import Config, from_dict

from backend.errors import AuthFailure
from shared.json_utils import convert_keys
from shared.types import Identity

logger = logging.getLogger(__name__)

IDENTITY_TOOLKIT_URL = "https://identitytoolkit.googleapis.com/v1"
DEFAULT_TIMEOUT_SECONDS = 30


class AuthClient(Protocol):
    """Sign-in/sign-out operations the session manager needs."""

    def sign_in_anonymously(self) -> Identity:
        ...

    def sign_in_with_password(self, email: str, password: str) -> Identity:
        ...

    def sign_out(self, identity: Identity) -> None:
        ...


@dataclass
class SignInResponse:
    """Subset of the Identity Toolkit sign-up/sign-in response."""

    local_id: str
    id_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[str] = None
    email: Optional[str] = None
    display_name: Optional[str] = None

    def to_identity(self, is_anonymous: bool) -> Identity:
        return Identity(
            uid=self.local_id,
            email=self.email or None,
            display_name=self.display_name or None,
            is_anonymous=is_anonymous,
            id_token=self.id_token,
            refresh_token=self.refresh_token,
        )


@dataclass
class FirebaseRestAuthClient:
    """Signs users in through the Identity Toolkit REST API."""

    api_key: str
    base_url: str = IDENTITY_TOOLKIT_URL
    timeout: int = DEFAULT_TIMEOUT_SECONDS
    session: requests.Session = field(default_factory=requests.Session, repr=False)

    def _post(self, endpoint: str, payload: dict) -> SignInResponse:
        url = f"{self.base_url}/accounts:{endpoint}"
        try:
            response = self.session.post(
                url,
                params={"key": self.api_key},
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise AuthFailure(str(e), code="network-request-failed") from e

        if not response.ok:
            raise _auth_failure_from_response(response)

        return from_dict(
            data_class=SignInResponse,
            data=convert_keys(response.json(), "camel_to_snake"),
            config=Config(check_types=False),
        )

    def sign_in_anonymously(self) -> Identity:
        result = self._post("signUp", {"returnSecureToken": True})
        return result.to_identity(is_anonymous=True)

    def sign_in_with_password(self, email: str, password: str) -> Identity:
        result = self._post(
            "signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        return result.to_identity(is_anonymous=False)

    def sign_out(self, identity: Identity) -> None:
        # ID tokens are stateless; signing out only drops them locally.
        return None


def _auth_failure_from_response(response: requests.Response) -> AuthFailure:
    try:
        error = response.json().get("error", {})
    except ValueError:
        error = {}
    message = error.get("message") or response.reason or "Authentication failed"
    # Identity Toolkit reports codes like "INVALID_PASSWORD : extra detail".
    code = message.split(" : ")[0].strip()
    return AuthFailure(message, code=code)


class InMemoryAuthClient:
    """Test double that keeps password accounts in a dict."""

    def __init__(self, accounts: Optional[dict[str, str]] = None):
        # email -> password
        self.accounts: dict[str, str] = dict(accounts or {})
        self.uids: dict[str, str] = {}
        self.signed_out: list[str] = []
        self.fail_sign_out = False

    def sign_in_anonymously(self) -> Identity:
        return Identity(uid=uuid.uuid4().hex, is_anonymous=True)

    def sign_in_with_password(self, email: str, password: str) -> Identity:
        if self.accounts.get(email) != password:
            raise AuthFailure("Invalid email or password", code="INVALID_LOGIN_CREDENTIALS")
        uid = self.uids.setdefault(email, uuid.uuid4().hex)
        return Identity(uid=uid, email=email)

    def sign_out(self, identity: Identity) -> None:
        if self.fail_sign_out:
            raise AuthFailure("Sign-out rejected", code="INTERNAL_ERROR")
        self.signed_out.append(identity.uid)
