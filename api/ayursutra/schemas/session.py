from pydantic import BaseModel, Field

from ayursutra.schemas.chat import ChatMessageOut


class SessionCreate(BaseModel):
    language: str | None = Field(default=None, description="BCP-47 tag, e.g. mr-IN")


class LanguageUpdate(BaseModel):
    language: str = Field(..., description="BCP-47 tag, e.g. en-US")


class SessionResponse(BaseModel):
    session_id: str
    language: str
    in_flight: bool
    history: list[ChatMessageOut]
