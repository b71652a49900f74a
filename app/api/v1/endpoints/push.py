import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.api import deps
from app.schemas.push import SendPushRequest, SendPushResponse
from app.services.messages import PushMessage
from app.services.push import PushService

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/send-push", response_model=SendPushResponse, dependencies=[Depends(deps.require_service_key)])
async def send_push(
    push_in: SendPushRequest,
    push_service: PushService = Depends(deps.get_push_service),
):
    """Dispara uma notificação para todos os inscritos do tópico (ou todos)."""
    message = PushMessage(
        title=push_in.title or "Paddock",
        body=push_in.body or "Nova notícia!",
        image=push_in.image,
        url=push_in.url or "/mercado",
        article_id=push_in.article_id,
        tag=f"paddock-{push_in.topic or 'news'}",
    )

    try:
        result = await push_service.send_batch(message, topic=push_in.topic)
    except Exception as e:
        logger.exception("Send push error")
        return JSONResponse(status_code=500, content={"error": str(e) or "Unknown error"})

    return result.as_response()
