from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from app.api import deps
from app.core.config import settings
from app.core.exceptions import StoreError
from app.schemas.subscription import NativeTokenCreate, PushSubscriptionCreate, SubscriptionStats
from app.services.targets import PushTargetStore, native_endpoint

router = APIRouter()

@router.get("/vapid-public-key")
def get_vapid_public_key():
    if not settings.VAPID_PUBLIC_KEY:
        raise HTTPException(500, "VAPID não configurado.")
    return {"publicKey": settings.VAPID_PUBLIC_KEY}

@router.post("/subscribe")
def subscribe(
    sub_in: PushSubscriptionCreate,
    db: Session = Depends(deps.get_db),
    user_id: str = Depends(deps.get_current_user_id)
):
    """Inscrição web push (navegador / PWA)"""
    try:
        sub = PushTargetStore(db).save_subscription(
            user_id,
            sub_in.endpoint,
            sub_in.topics,
            p256dh=sub_in.keys.p256dh,
            auth=sub_in.keys.auth,
        )
    except StoreError:
        raise HTTPException(500, "Falha ao salvar inscrição")
    return {"success": True, "id": sub.id}

@router.post("/subscribe-native")
def subscribe_native(
    token_in: NativeTokenCreate,
    db: Session = Depends(deps.get_db),
    user_id: str = Depends(deps.get_current_user_id)
):
    """Registro do token do app nativo (APNs / FCM)"""
    try:
        sub = PushTargetStore(db).save_subscription(
            user_id,
            native_endpoint(token_in.platform, token_in.token),
            token_in.topics,
        )
    except StoreError:
        raise HTTPException(500, "Falha ao salvar inscrição")
    return {"success": True, "id": sub.id}

@router.delete("/unsubscribe")
def unsubscribe(
    endpoint: str,
    db: Session = Depends(deps.get_db),
    user_id: str = Depends(deps.get_current_user_id)
):
    try:
        removed = PushTargetStore(db).remove_subscription(user_id, endpoint)
    except StoreError:
        raise HTTPException(500, "Falha ao remover inscrição")
    return {"success": True, "removed": removed}

@router.get("/stats", response_model=SubscriptionStats, dependencies=[Depends(deps.require_service_key)])
def subscription_stats(db: Session = Depends(deps.get_db)):
    """Totais por tópico (tela de push do admin)"""
    try:
        return PushTargetStore(db).topic_stats()
    except StoreError:
        raise HTTPException(500, "Falha ao contar inscrições")
