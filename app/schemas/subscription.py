from typing import List, Literal
from pydantic import BaseModel, Field, model_validator

from app.services.targets import valid_native_token

DEFAULT_TOPICS = ["launches", "news"]

class PushKeys(BaseModel):
    p256dh: str
    auth: str

class PushSubscriptionCreate(BaseModel):
    endpoint: str
    keys: PushKeys
    topics: List[str] = Field(default_factory=lambda: list(DEFAULT_TOPICS))

class NativeTokenCreate(BaseModel):
    platform: Literal["ios", "android"]
    token: str = Field(min_length=1)
    topics: List[str] = Field(default_factory=lambda: list(DEFAULT_TOPICS))

    @model_validator(mode="after")
    def check_token(self):
        # O token vira segmento de caminho na chamada ao APNs
        if not valid_native_token(self.platform, self.token):
            raise ValueError(f"token {self.platform} inválido")
        return self

class SubscriptionStats(BaseModel):
    total_subscriptions: int
    topic_counts: dict
