import logging
from typing import Annotated, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Body, Header, Query, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from committee_auth.errors import AuthFailure, ConfigError
from committee_auth.schemas.auth import AuthBeginResponse, VerifyRequest, VerifyResponse
from committee_auth.utils.auth import OAuthServiceDep, SessionVerifierDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Authentication"])


def _redirect(url: str, params: dict[str, str]) -> RedirectResponse:
    return RedirectResponse(f"{url}?{urlencode(params)}", status_code=status.HTTP_302_FOUND)


@router.get("/auth-begin", response_model=AuthBeginResponse)
async def auth_begin(
    request: Request,
    settings: SettingsDep,
    oauth_service: OAuthServiceDep,
    origin: Annotated[Optional[str], Header()] = None,
) -> AuthBeginResponse:
    redirect_uri = settings.github_redirect_uri or str(request.url_for("auth_callback"))
    result = oauth_service.begin(redirect_uri=redirect_uri, origin=origin)
    return AuthBeginResponse(auth_url=result.auth_url, state=result.state)


@router.get("/auth-callback", name="auth_callback")
async def auth_callback(
    settings: SettingsDep,
    oauth_service: OAuthServiceDep,
    code: Annotated[Optional[str], Query()] = None,
    state: Annotated[Optional[str], Query()] = None,
    error: Annotated[Optional[str], Query()] = None,
) -> RedirectResponse:
    error_page = settings.client_page(settings.client_error_path)
    try:
        result = await oauth_service.callback(code=code, state=state, provider_error=error)
    except AuthFailure as e:
        logger.warning("OAuth callback rejected: %s", e.reason.value)
        return _redirect(error_page, {"error": e.message, "status": "error"})
    except ConfigError as e:
        logger.error("OAuth callback configuration error: %s", e)
        if not settings.client_url:
            # No client page to redirect to; answered as 500 JSON
            raise
        return _redirect(
            error_page, {"error": "Authentication service is not configured", "status": "error"}
        )

    return _redirect(
        settings.client_page(settings.client_success_path),
        {"token": result.session_token, "user": result.identity.login, "status": "success"},
    )


@router.post("/auth-verify", response_model=VerifyResponse, response_model_exclude_none=True)
async def auth_verify(
    verifier: SessionVerifierDep,
    body: Annotated[Optional[VerifyRequest], Body()] = None,
) -> VerifyResponse | JSONResponse:
    if body is None or not body.token:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"valid": False, "error": "No token provided"},
        )

    try:
        session = verifier.verify(body.token)
    except AuthFailure as e:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"valid": False, "error": e.message},
        )

    return VerifyResponse(valid=True, user=session.claims, expires_at=session.expires_at)
