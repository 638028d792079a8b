"""Game router: screens the game client shows before and after a run."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from smp.auth.dependencies import get_current_wallet
from smp.database import get_session
from smp.game.schemas import GameCompletionData, GameStartData
from smp.game.service import get_game_completion_data, get_game_start_data
from smp.schemas import Envelope, ok

router = APIRouter(prefix="/api/v1/game", tags=["Game"])


@router.get("/start-data", response_model=Envelope[GameStartData])
async def start_data(
    wallet: str = Depends(get_current_wallet),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    return ok(await get_game_start_data(db, wallet))


@router.get("/completion-data", response_model=Envelope[GameCompletionData])
async def completion_data(
    wallet: str = Depends(get_current_wallet),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    return ok(await get_game_completion_data(db, wallet))
