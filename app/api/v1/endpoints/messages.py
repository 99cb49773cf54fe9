from fastapi import APIRouter, Depends, HTTPException

from app.models.scheduled_message import ScheduledMessage
from app.schemas.message import MessageStatsOut, ScheduledMessageOut, ScheduleMessageIn
from app.services.auth import Actor, get_actor
from app.services.engine import DeliveryEngine, get_engine
from app.services.errors import NotFoundError, ValidationError
from app.services.scheduler import OUTCOME_SKIPPED

router = APIRouter(prefix="/messages")


def _out(m: ScheduledMessage) -> ScheduledMessageOut:
    return ScheduledMessageOut(
        id=m.id,
        channel_id=m.channel_id,
        channel_name=m.channel_name,
        message=m.body,
        scheduled_for=m.due_at,
        status=m.status,
        created_at=m.created_at,
        sent_at=m.sent_at,
        error=m.last_error,
    )


@router.post("/schedule", response_model=ScheduledMessageOut, status_code=201)
async def schedule_message(
    payload: ScheduleMessageIn,
    actor: Actor = Depends(get_actor),
    engine: DeliveryEngine = Depends(get_engine),
) -> ScheduledMessageOut:
    # Channel reachability is the caller's concern; channel_name is stored as given
    try:
        message_id = await engine.scheduler.schedule(
            principal_id=actor.principal_id,
            workspace_id=actor.workspace_id,
            channel_id=payload.channel_id,
            channel_name=payload.channel_name,
            body=payload.message,
            due_at=payload.scheduled_for,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    row = await engine.message_store.find_by_id(message_id)
    return _out(row)


@router.get("/scheduled", response_model=list[ScheduledMessageOut])
async def list_scheduled_messages(
    actor: Actor = Depends(get_actor),
    engine: DeliveryEngine = Depends(get_engine),
) -> list[ScheduledMessageOut]:
    rows = await engine.scheduler.list_for_principal(actor.principal_id)
    return [_out(r) for r in rows]


@router.delete("/scheduled/{message_id}")
async def cancel_scheduled_message(
    message_id: str,
    actor: Actor = Depends(get_actor),
    engine: DeliveryEngine = Depends(get_engine),
) -> dict:
    if not await engine.scheduler.cancel(message_id, actor.principal_id):
        raise HTTPException(status_code=404, detail="Scheduled message not found or already sent")
    return {"id": message_id, "status": "cancelled"}


@router.post("/send-now/{message_id}")
async def send_scheduled_message_now(
    message_id: str,
    actor: Actor = Depends(get_actor),
    engine: DeliveryEngine = Depends(get_engine),
) -> dict:
    try:
        outcome = await engine.scheduler.send_now(message_id, actor.principal_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Scheduled message not found or already sent")

    if outcome == OUTCOME_SKIPPED:
        raise HTTPException(status_code=404, detail="Scheduled message not found or already sent")

    row = await engine.message_store.find_by_id(message_id)
    return {"id": message_id, "status": row.status, "error": row.last_error}


@router.get("/stats", response_model=MessageStatsOut)
async def message_stats(
    actor: Actor = Depends(get_actor),
    engine: DeliveryEngine = Depends(get_engine),
) -> MessageStatsOut:
    return MessageStatsOut(**await engine.scheduler.stats(actor.principal_id))
