from typing import Iterable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import StoreError
from app.models.notification import InAppNotification
from app.services.messages import PushMessage

class InAppNotificationStore:
    """Espelha cada push em uma notificação in-app (sininho do app)."""

    def __init__(self, db: Session):
        self.db = db

    def create_for_users(self, user_ids: Iterable[str], message: PushMessage) -> int:
        rows = [
            InAppNotification(
                user_id=user_id,
                type="push",
                title=message.title,
                message=message.body,
                url=message.url,
                article_id=message.article_id,
            )
            for user_id in sorted(set(user_ids))
        ]
        if not rows:
            return 0
        try:
            self.db.add_all(rows)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"Falha ao gravar notificações in-app: {e}") from e
        return len(rows)
