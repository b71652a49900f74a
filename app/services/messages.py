import enum
from dataclasses import dataclass, field
from typing import List, Optional


class SendOutcome(str, enum.Enum):
    DELIVERED = "delivered"
    TEMPORARILY_FAILED = "temporarily_failed"
    PERMANENTLY_INVALID = "permanently_invalid"


@dataclass(frozen=True)
class PushMessage:
    title: str
    body: str
    image: Optional[str] = None
    url: Optional[str] = None
    article_id: Optional[str] = None
    tag: Optional[str] = None

    def to_payload(self) -> dict:
        """Formato lido pelo service worker (public/sw.js)."""
        payload = {
            "title": self.title,
            "body": self.body,
            "image": self.image,
            "url": self.url,
            "articleId": self.article_id,
            "tag": self.tag,
        }
        return {k: v for k, v in payload.items() if v is not None}


@dataclass
class DispatchResult:
    native: int = 0
    web: int = 0
    failed: int = 0
    skipped: int = 0
    deleted: List[str] = field(default_factory=list)

    @property
    def sent(self) -> int:
        return self.native + self.web

    def as_response(self) -> dict:
        return {
            "success": True,
            "sent": self.sent,
            "native": self.native,
            "web": self.web,
            "failed": self.failed,
            "skipped": self.skipped,
        }
