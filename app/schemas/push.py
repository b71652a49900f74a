from typing import Optional
from pydantic import BaseModel, Field

class SendPushRequest(BaseModel):
    title: Optional[str] = None
    body: Optional[str] = None
    image: Optional[str] = None
    url: Optional[str] = None
    topic: Optional[str] = None
    # O app manda camelCase, como no service worker
    article_id: Optional[str] = Field(default=None, alias="articleId")

class SendPushResponse(BaseModel):
    success: bool = True
    sent: int
    native: int
    web: int
    failed: int
    skipped: int = 0
