from pydantic import BaseModel, Field


class InterestRequest(BaseModel):
    to_user_id: str
    venue_id: str


class InterestResponse(BaseModel):
    status: str
    interest_id: str | None = None
    match_id: str | None = None


class ContactShareRequest(BaseModel):
    kind: str
    value: str


class SendMessageRequest(BaseModel):
    text: str = Field(default="", max_length=20000)


class TypingRequest(BaseModel):
    is_typing: bool = True


class CheckInRequest(BaseModel):
    venue_id: str


class BlockRequest(BaseModel):
    blocked_user_id: str


class QuotaResponse(BaseModel):
    limit: int
    used: int
    remaining: int
    frozen: bool
    can_send: bool
    reason: str | None = None

