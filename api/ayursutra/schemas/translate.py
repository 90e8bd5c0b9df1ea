from pydantic import BaseModel, Field


class TranslateRequest(BaseModel):
    text: str = Field(..., description="Text to translate")
    source: str = Field(default="en-US", description="Source language tag")
    target: str = Field(..., description="Target language tag")


class TranslateResponse(BaseModel):
    translation: str
    source: str
    target: str
    provider: str
    processing_ms: float
