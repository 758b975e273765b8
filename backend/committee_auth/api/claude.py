from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from committee_auth.schemas.claude import ClaudeExtractRequest, ClaudeExtractResponse
from committee_auth.services.claude_service import ClaudeService, ClaudeServiceError
from committee_auth.utils.auth import CommitteeSession, SettingsDep

router = APIRouter(tags=["Claude"])


def get_claude_service(settings: SettingsDep) -> ClaudeService:
    return ClaudeService(settings)


@router.post("/claude-extract", response_model=ClaudeExtractResponse)
async def claude_extract(
    body: ClaudeExtractRequest,
    session: CommitteeSession,
    claude_service: Annotated[ClaudeService, Depends(get_claude_service)],
) -> ClaudeExtractResponse | JSONResponse:
    try:
        return await claude_service.create_message(body)
    except ClaudeServiceError as e:
        return JSONResponse(status_code=e.status_code, content=e.payload)
