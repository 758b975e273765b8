from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ClaudeExtractRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: Optional[str] = None
    # Full content-part array (text, image, document); takes precedence over prompt
    message_content: Optional[list[dict[str, Any]]] = Field(None, alias="messageContent")
    model: Optional[str] = None
    max_tokens: Optional[int] = Field(None, alias="maxTokens", gt=0)
    api_key: Optional[str] = Field(None, alias="apiKey")
    temperature: float = Field(default=0.1, ge=0, le=1)


class ClaudeExtractResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    content: str
    usage: Optional[dict[str, Any]] = None
    model: str
    processed_by: str = Field(default="Claude API proxy", alias="processedBy")
    processed_at: str = Field(..., alias="processedAt")
