from __future__ import annotations

from fastapi import APIRouter, HTTPException

from wordrush.runtime import runtime

router = APIRouter(tags=["rooms"])


@router.get("/api/rooms/{room_id}")
async def room_summary(room_id: str) -> dict[str, object]:
    summary = await runtime.describe_room(room_id)
    if summary is None:
        raise HTTPException(status_code=404, detail="Room not found")
    return summary


@router.get("/api/invites/{invite_code}")
async def resolve_invite(invite_code: str) -> dict[str, object]:
    room_id = await runtime.resolve_invite(invite_code)
    if not room_id:
        raise HTTPException(status_code=404, detail="Invalid invite code")
    return {"inviteCode": invite_code.strip().upper(), "roomId": room_id}
