"""HTTP client forwarding authentication and account calls to the user service."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Protocol, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from schemas import Account, Credentials, Email, NewAccount, Password, Token

from ..domain.profile import UserProfile
from ..errors import UnauthenticatedError, UpstreamError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

BEARER_SCHEME = "bearer"


class InboundRequest(Protocol):
    """Anything exposing case-insensitive request headers (e.g. a Starlette ``Request``)."""

    @property
    def headers(self) -> Mapping[str, str]: ...


class UserMsClient:
    """Per-request client for the user microservice.

    One instance is created for each inbound request. The bearer token taken
    from that request is attached to every outbound call made through the
    instance, so an instance must never be shared between requests.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Bind an ``httpx.AsyncClient`` to the user service base URL."""
        self.base_url = base_url.rstrip("/")
        self._token: str | None = None
        client_kwargs: dict[str, Any] = {"base_url": self.base_url}
        if timeout is not None:
            client_kwargs["timeout"] = timeout
        if transport is not None:
            client_kwargs["transport"] = transport
        self._client = httpx.AsyncClient(**client_kwargs)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "UserMsClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    @property
    def token(self) -> str | None:
        return self._token

    def set_token_from_request(self, request: InboundRequest) -> None:
        """Store the bearer token of ``request`` for subsequent outbound calls.

        Raises
        ------
        UnauthenticatedError
            When the request has no ``Authorization`` header, or the header
            carries no token after the scheme marker.
        """
        header_value = request.headers.get("authorization")
        if not header_value:
            raise UnauthenticatedError()

        parts = header_value.split(None, 1)
        if len(parts) != 2 or parts[0].lower() != BEARER_SCHEME:
            raise UnauthenticatedError("Malformed authorization header")

        self._token = parts[1].strip()

    def to_user_profile(self, account: Account) -> UserProfile:
        return UserProfile(
            security_id=account.id,
            username=account.username,
            email=account.email,
        )

    async def sign_up(self, new_account: NewAccount) -> Account:
        response = await self._request("POST", "/auth/sign-up", new_account)
        return self._handle_response(response, Account)

    async def login(self, credentials: Credentials) -> Token:
        response = await self._request("POST", "/auth/login", credentials)
        return self._handle_response(response, Token)

    async def who_am_i(self) -> Account:
        response = await self._request("GET", "/auth/who-am-i")
        return self._handle_response(response, Account)

    async def request_email_verification(self) -> Account:
        response = await self._request("POST", "/account/request-email-verification")
        return self._handle_response(response, Account)

    async def verify_email(self) -> Account:
        response = await self._request("PATCH", "/account/verify-email")
        return self._handle_response(response, Account)

    async def request_password_recovery(self, email: Email) -> None:
        response = await self._request("POST", "/credentials/request-password-recovery", email)
        self._handle_response(response, None)

    async def update_password(self, password: Password) -> None:
        response = await self._request("PATCH", "/credentials/update-password", password)
        self._handle_response(response, None)

    def _build_headers(self) -> dict[str, str]:
        """Merge the base headers with the bearer token when one is set."""
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _request(
        self, method: str, path: str, payload: BaseModel | None = None
    ) -> httpx.Response:
        body = payload.model_dump(mode="json", exclude_none=True) if payload is not None else None
        logger.debug(
            "user-ms request %s %s (token attached: %s)", method, path, self._token is not None
        )
        return await self._client.request(method, path, json=body, headers=self._build_headers())

    def _handle_response(
        self, response: httpx.Response, model: type[ModelT] | None
    ) -> ModelT | None:
        """Decode a successful response into ``model`` or raise ``UpstreamError``.

        Void operations pass ``model=None`` and ignore whatever body came back.
        """
        if not response.is_success:
            message = _error_message(response)
            logger.warning(
                "user-ms %s %s failed with %s: %s",
                response.request.method,
                response.request.url.path,
                response.status_code,
                message,
            )
            raise UpstreamError(response.status_code, message)

        if model is None:
            return None

        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            logger.warning(
                "user-ms %s %s returned an undecodable body: %s",
                response.request.method,
                response.request.url.path,
                exc,
            )
            raise UpstreamError(502, "Invalid response from user service") from exc


def _error_message(response: httpx.Response) -> str:
    """Extract the remote error message, preferring the JSON ``message`` field."""
    try:
        data = response.json()
    except ValueError:
        data = None

    if isinstance(data, dict):
        message = data.get("message")
        if isinstance(message, str) and message:
            return message
        # validation pipes report one message per failed constraint
        if isinstance(message, list) and message and all(isinstance(m, str) for m in message):
            return "; ".join(message)
        detail = data.get("detail")
        if isinstance(detail, str) and detail:
            return detail

    return response.text or response.reason_phrase
