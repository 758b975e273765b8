from datetime import datetime, timezone

from fastapi import APIRouter

from committee_auth.schemas.auth import HealthEnvironment, HealthResponse
from committee_auth.utils.auth import SettingsDep

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: SettingsDep) -> HealthResponse:
    # Presence flags only, never values
    return HealthResponse(
        status="OK",
        message=f"{settings.app_name} is working!",
        timestamp=datetime.now(timezone.utc).isoformat(),
        environment=HealthEnvironment(
            has_github_client_id=bool(settings.github_client_id),
            has_github_secret=bool(settings.github_client_secret),
            has_jwt_secret=bool(settings.jwt_secret),
            has_allowed_email=bool(settings.allowed_email),
            has_client_url=bool(settings.client_url),
        ),
    )
