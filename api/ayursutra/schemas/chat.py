from pydantic import BaseModel, Field


class ChatMessageOut(BaseModel):
    role: str = Field(description="user or assistant")
    text: str


class ChatRequest(BaseModel):
    message: str = Field(..., description="Patient message, in the session language")
    session_id: str | None = Field(default=None, description="Session UUID")
    language: str | None = Field(default=None, description="BCP-47 tag, e.g. hi-IN")


class ChatResponse(BaseModel):
    reply: str
    session_id: str
    language: str
    history: list[ChatMessageOut]
    in_flight: bool = False
    processing_ms: float
