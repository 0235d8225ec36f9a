"""HTTP route definitions for the gateway service."""

from __future__ import annotations

import logging
from typing import AsyncIterator, Callable

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from pydantic import BaseModel

from schemas import Account, Credentials, Email, NewAccount, Password, Token

from ..clients.user_ms import UserMsClient
from ..domain.profile import UserProfile
from ..errors import GatewayError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1")

UserMsClientFactory = Callable[[], UserMsClient]


class ProfileResponse(BaseModel):
    """Serialised representation of a `UserProfile`."""

    security_id: str
    username: str
    email: str

    @classmethod
    def from_domain(cls, profile: UserProfile) -> "ProfileResponse":
        """Build a response model from the domain profile."""
        return cls(
            security_id=profile.security_id,
            username=profile.username,
            email=profile.email,
        )


def get_client_factory(request: Request) -> UserMsClientFactory:
    """Resolve the client factory stored on the FastAPI application state."""
    factory: UserMsClientFactory = request.app.state.user_ms_client_factory
    return factory


async def get_user_ms_client(
    factory: UserMsClientFactory = Depends(get_client_factory),
) -> AsyncIterator[UserMsClient]:
    """Create a fresh client for the current request and close it afterwards."""
    async with factory() as client:
        yield client


async def get_authenticated_client(
    request: Request,
    client: UserMsClient = Depends(get_user_ms_client),
) -> UserMsClient:
    """Return the request client with the inbound bearer token attached."""
    try:
        client.set_token_from_request(request)
    except GatewayError as exc:
        raise _http_error_from_gateway_error(exc) from exc
    return client


@router.post("/auth/sign-up", response_model=Account, status_code=status.HTTP_201_CREATED)
async def sign_up(
    payload: NewAccount,
    client: UserMsClient = Depends(get_user_ms_client),
) -> Account:
    """Register a new account with the user service."""
    try:
        return await client.sign_up(payload)
    except GatewayError as exc:
        raise _http_error_from_gateway_error(exc) from exc


@router.post("/auth/login", response_model=Token)
async def login(
    payload: Credentials,
    client: UserMsClient = Depends(get_user_ms_client),
) -> Token:
    """Exchange credentials for a session token."""
    try:
        return await client.login(payload)
    except GatewayError as exc:
        raise _http_error_from_gateway_error(exc) from exc


@router.get("/auth/who-am-i", response_model=Account)
async def who_am_i(client: UserMsClient = Depends(get_authenticated_client)) -> Account:
    """Return the account owning the inbound bearer token."""
    try:
        return await client.who_am_i()
    except GatewayError as exc:
        raise _http_error_from_gateway_error(exc) from exc


@router.get("/auth/profile", response_model=ProfileResponse)
async def profile(client: UserMsClient = Depends(get_authenticated_client)) -> ProfileResponse:
    try:
        account = await client.who_am_i()
    except GatewayError as exc:
        raise _http_error_from_gateway_error(exc) from exc
    return ProfileResponse.from_domain(client.to_user_profile(account))


@router.post("/account/request-email-verification", response_model=Account)
async def request_email_verification(
    client: UserMsClient = Depends(get_authenticated_client),
) -> Account:
    """Ask the user service to send a verification email."""
    try:
        return await client.request_email_verification()
    except GatewayError as exc:
        raise _http_error_from_gateway_error(exc) from exc


@router.patch("/account/verify-email", response_model=Account)
async def verify_email(client: UserMsClient = Depends(get_authenticated_client)) -> Account:
    """Mark the account's email as verified."""
    try:
        return await client.verify_email()
    except GatewayError as exc:
        raise _http_error_from_gateway_error(exc) from exc


@router.post(
    "/credentials/request-password-recovery",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def request_password_recovery(
    payload: Email,
    client: UserMsClient = Depends(get_user_ms_client),
) -> Response:
    """Start the password recovery flow for an email address."""
    try:
        await client.request_password_recovery(payload)
    except GatewayError as exc:
        raise _http_error_from_gateway_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch(
    "/credentials/update-password",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def update_password(
    payload: Password,
    client: UserMsClient = Depends(get_authenticated_client),
) -> Response:
    """Replace the password of the authenticated account."""
    try:
        await client.update_password(payload)
    except GatewayError as exc:
        raise _http_error_from_gateway_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _http_error_from_gateway_error(exc: GatewayError) -> HTTPException:
    logger.info("gateway error %s: %s", exc.status_code, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return HTTPException(status_code=exc.status_code, detail=exc.message, headers=headers)
