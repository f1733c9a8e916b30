"""游戏动作 API"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, field_validator

from game.accounts import AccountNotFound, NoAccountsAvailable
from game.orchestrator import GameOrchestrator
from models.game_models import (
    GameAction, StartGame, Vote, NightAction, CupidAction, WitchAction,
    HunterAction, PassNight, PassDay, EndVoting,
    Confirmed, Sentinel, Failed,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/games", tags=["游戏"])


def get_orchestrator(request: Request) -> GameOrchestrator:
    """FastAPI 依赖注入：获取应用级编排器"""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="编排器未配置")
    return orchestrator


class StartGameRequest(BaseModel):
    players: list[str]
    actor: str

    @field_validator("players")
    @classmethod
    def validate_players(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("玩家列表不能为空")
        return v


class TargetRequest(BaseModel):
    target: str
    actor: str


class CupidRequest(BaseModel):
    lover1: str
    lover2: str
    actor: str


class WitchRequest(BaseModel):
    target: str
    save: bool = False
    poison: bool = False
    actor: str


class PhaseRequest(BaseModel):
    actor: Optional[str] = None


class ActionResponse(BaseModel):
    status: str  # confirmed / sentinel
    transaction_hash: Optional[str] = None
    reason: Optional[str] = None
    attempts: int
    phase: str
    round: int


async def _run(orchestrator: GameOrchestrator, action: GameAction) -> ActionResponse:
    try:
        outcome = await orchestrator.execute(action)
    except AccountNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except NoAccountsAvailable as e:
        raise HTTPException(status_code=409, detail=str(e))

    if isinstance(outcome, Failed):
        raise HTTPException(status_code=502, detail=f"{action.entrypoint} 失败: {outcome.error}")

    progress = orchestrator.peek(action.game_id)
    return ActionResponse(
        status=outcome.status,
        transaction_hash=outcome.handle if isinstance(outcome, Confirmed) else None,
        reason=outcome.reason if isinstance(outcome, Sentinel) else None,
        attempts=outcome.attempts,
        phase=progress.phase.value,
        round=progress.round,
    )


@router.get("/{game_id}")
async def get_game(game_id: int, orchestrator: GameOrchestrator = Depends(get_orchestrator)):
    """获取本地阶段镜像"""
    return orchestrator.peek(game_id).to_dict()


@router.post("/{game_id}/start", response_model=ActionResponse)
async def start_game(game_id: int, data: StartGameRequest, orchestrator: GameOrchestrator = Depends(get_orchestrator)):
    """开始游戏；同 ID 游戏已存在时返回 sentinel"""
    return await _run(orchestrator, StartGame(game_id=game_id, players=tuple(data.players), actor=data.actor))


@router.post("/{game_id}/vote", response_model=ActionResponse)
async def vote(game_id: int, data: TargetRequest, orchestrator: GameOrchestrator = Depends(get_orchestrator)):
    return await _run(orchestrator, Vote(game_id=game_id, target=data.target, actor=data.actor))


@router.post("/{game_id}/night-action", response_model=ActionResponse)
async def night_action(game_id: int, data: TargetRequest, orchestrator: GameOrchestrator = Depends(get_orchestrator)):
    """狼人击杀 / 守卫守护"""
    return await _run(orchestrator, NightAction(game_id=game_id, target=data.target, actor=data.actor))


@router.post("/{game_id}/cupid-action", response_model=ActionResponse)
async def cupid_action(game_id: int, data: CupidRequest, orchestrator: GameOrchestrator = Depends(get_orchestrator)):
    return await _run(
        orchestrator,
        CupidAction(game_id=game_id, lover1=data.lover1, lover2=data.lover2, actor=data.actor),
    )


@router.post("/{game_id}/witch-action", response_model=ActionResponse)
async def witch_action(game_id: int, data: WitchRequest, orchestrator: GameOrchestrator = Depends(get_orchestrator)):
    return await _run(
        orchestrator,
        WitchAction(game_id=game_id, target=data.target, save=data.save, poison=data.poison, actor=data.actor),
    )


@router.post("/{game_id}/hunter-action", response_model=ActionResponse)
async def hunter_action(game_id: int, data: TargetRequest, orchestrator: GameOrchestrator = Depends(get_orchestrator)):
    return await _run(orchestrator, HunterAction(game_id=game_id, target=data.target, actor=data.actor))


@router.post("/{game_id}/pass-night", response_model=ActionResponse)
async def pass_night(game_id: int, data: PhaseRequest | None = None, orchestrator: GameOrchestrator = Depends(get_orchestrator)):
    actor = data.actor if data else None
    return await _run(orchestrator, PassNight(game_id=game_id, actor=actor))


@router.post("/{game_id}/pass-day", response_model=ActionResponse)
async def pass_day(game_id: int, data: PhaseRequest | None = None, orchestrator: GameOrchestrator = Depends(get_orchestrator)):
    actor = data.actor if data else None
    return await _run(orchestrator, PassDay(game_id=game_id, actor=actor))


@router.post("/{game_id}/end-voting", response_model=ActionResponse)
async def end_voting(game_id: int, data: PhaseRequest | None = None, orchestrator: GameOrchestrator = Depends(get_orchestrator)):
    actor = data.actor if data else None
    return await _run(orchestrator, EndVoting(game_id=game_id, actor=actor))
