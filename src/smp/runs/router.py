"""Run router: all /api/v1/runs/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.ext.asyncio import AsyncSession

from smp.auth.dependencies import get_current_wallet
from smp.database import get_session
from smp.db.models import Run, RunParticipant
from smp.errors import AppError, ErrorCode
from smp.runs.schemas import (
    CreateTestRunResponse,
    FinishRunRequest,
    FinishRunResponse,
    ParticipantResponse,
    RecentRunEntry,
    RelicRef,
    RunResponse,
    RunResultsResponse,
)
from smp.runs.service import (
    create_test_run,
    finish_run,
    get_recent_runs,
    get_run_results,
    require_run,
)
from smp.schemas import Envelope, ok

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/runs", tags=["Runs"])


def _participant(p: RunParticipant) -> ParticipantResponse:
    return ParticipantResponse(
        wallet=p.wallet,
        display_name=p.display_name,
        avatar_id=p.avatar_id,
        damage=p.damage,
        normal_kills=p.normal_kills,
    )


def run_response(run: Run) -> RunResponse:
    return RunResponse(
        run_id=run.id,
        party_id=run.party_id,
        gate_id=run.gate_id,
        boss_id=run.boss_id,
        participants=[_participant(p) for p in run.participants],
        started_at=run.started_at,
        ended_at=run.ended_at,
        status="completed" if run.is_finished else "in_progress",
    )


@router.post("/{run_id}/finish", response_model=Envelope[FinishRunResponse])
async def finish(
    run_id: str,
    body: FinishRunRequest,
    idempotency_key: str | None = Header(None, alias="Idempotency-Key"),
    wallet: str = Depends(get_current_wallet),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    """Finish a run once. Repeating the call with the same Idempotency-Key replays the response."""
    run = await require_run(db, run_id)
    if wallet not in {p.wallet for p in run.participants}:
        raise AppError.forbidden(ErrorCode.FORBIDDEN, "Only run participants can finish the run")

    result = await finish_run(db, run_id, body.boss_id, body.contributions, idempotency_key=idempotency_key)
    logger.info("run_finished", run_id=run_id, wallet=wallet, tx_hash=result["txHash"])
    return ok(result)


@router.post("/create-test/{gate_id}", response_model=Envelope[CreateTestRunResponse])
async def create_test(
    gate_id: str,
    wallet: str = Depends(get_current_wallet),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    run = await create_test_run(db, wallet, gate_id)
    logger.info("test_run_created", run_id=run.id, wallet=wallet, gate_id=gate_id)
    return ok(CreateTestRunResponse(run_id=run.id, message="Test run created"))


@router.get("/results/{run_id}", response_model=Envelope[RunResultsResponse])
async def results(run_id: str, db: AsyncSession = Depends(get_session)) -> dict[str, object]:
    run = await get_run_results(db, run_id)
    return ok(
        RunResultsResponse(
            run_id=run.id,
            gate_id=run.gate_id,
            boss_id=run.boss_id,
            participants=[_participant(p) for p in run.participants],
            minted_relics=[RelicRef(token_id=r["tokenId"], cid=r["cid"]) for r in run.minted_relics or []],
            xp_awards=run.xp_awards or [],
            rank_ups=run.rank_ups or [],
            tx_hash=run.tx_hash,
            completed_at=run.ended_at,
        )
    )


@router.get("/leaderboard/recent", response_model=Envelope[list[RecentRunEntry]])
async def recent_runs(
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    """Recently finished runs with their top damage dealer."""
    runs = await get_recent_runs(db, limit)
    entries = []
    for run in runs:
        top = max(run.participants, key=lambda p: p.damage, default=None)
        entries.append(
            RecentRunEntry(
                run_id=run.id,
                gate_id=run.gate_id,
                boss_id=run.boss_id,
                total_damage=sum(p.damage for p in run.participants),
                participant_count=len(run.participants),
                completed_at=run.ended_at,
                top_performer=_participant(top) if top is not None else None,
            )
        )
    return ok(entries)


@router.get("/{run_id}", response_model=Envelope[RunResponse])
async def get_run_by_id(run_id: str, db: AsyncSession = Depends(get_session)) -> dict[str, object]:
    run = await require_run(db, run_id)
    return ok(run_response(run))
