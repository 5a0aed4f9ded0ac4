"""FastAPI application entry point"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Optional
import logging

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from qscore.config.log import configure_logging, log_extra
from qscore.config.settings import settings
from qscore.orchestrator import LeaderboardOrchestrator
from qscore.services.activity import ActivityItem
from qscore.services.aggregation import PERIOD_WEEK, PERIODS, LeaderboardSnapshot
from qscore.services.catalog import FACE_VARIANTS, MEMBER_COLORS
from qscore.services.errors import PrincipalRejectedError, QScoreValidationError
from qscore.services.types import PointEntry, TeamMember
from qscore.store.contracts import ChangeEvent
from qscore.store.realtime import ChangeFeed

configure_logging()
logger = logging.getLogger(__name__)


class LogPointsRequest(BaseModel):
    member_id: str
    task_id: str
    quantity: int = 1
    custom_task_name: Optional[str] = None
    custom_task_points: Optional[int] = None
    timestamp: Optional[datetime] = None


class UpdateEntryRequest(BaseModel):
    member_id: Optional[str] = None
    task_id: Optional[str] = None
    quantity: Optional[int] = None


class SignInRequest(BaseModel):
    email: str
    name: Optional[str] = None
    avatar: Optional[str] = None


class ProfileRequest(BaseModel):
    color: Optional[str] = None
    face: Optional[int] = None


class ChangeHookRequest(BaseModel):
    """Database webhook payload (`type` is INSERT, UPDATE or DELETE)."""

    type: str
    table: str
    record: Optional[Dict[str, Any]] = None
    old_record: Optional[Dict[str, Any]] = None


def build_default_orchestrator() -> LeaderboardOrchestrator:
    """Wire the SQL store, directory and change feed from settings."""
    from qscore.config.database import init_db
    from qscore.store.sql_store import SQLLedgerStore, SQLUserDirectory

    init_db()
    feed = ChangeFeed()
    return LeaderboardOrchestrator(
        store=SQLLedgerStore(feed=feed),
        directory=SQLUserDirectory(feed=feed),
        feed=feed,
    )


def _member_payload(member: TeamMember) -> Dict[str, Any]:
    return {
        "id": member.id,
        "name": member.name,
        "avatar": member.avatar,
        "color": member.color,
        "face": member.face,
    }


def _entry_payload(entry: PointEntry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "member_id": entry.member_id,
        "task_id": entry.task_id,
        "quantity": entry.quantity,
        "timestamp": entry.timestamp.isoformat(),
        "daily_bonus": entry.daily_bonus,
        "custom_task_name": entry.custom_task_name,
        "custom_task_points": entry.custom_task_points,
    }


def _leaderboard_payload(snapshot: LeaderboardSnapshot) -> Dict[str, Any]:
    return {
        "period": snapshot.period,
        "window_start": snapshot.window_start.isoformat() if snapshot.window_start else None,
        "entry_count": snapshot.entry_count,
        "total_points": snapshot.total_points,
        "first_entry_at": snapshot.first_entry_at.isoformat() if snapshot.first_entry_at else None,
        "last_entry_at": snapshot.last_entry_at.isoformat() if snapshot.last_entry_at else None,
        "standings": [
            {"rank": index + 1, "member": _member_payload(row.member), "points": row.points}
            for index, row in enumerate(snapshot.standings)
        ],
        "series": [
            {"label": point.label, "boundary": point.boundary.isoformat(), "totals": point.totals}
            for point in snapshot.series
        ],
    }


def _activity_payload(item: ActivityItem) -> Dict[str, Any]:
    return {
        "entry": _entry_payload(item.entry),
        "member": _member_payload(item.member),
        "task_name": item.task_name,
        "points": item.points,
        "time_ago": item.time_ago,
    }


def create_app(orchestrator_factory: Optional[Callable[[], LeaderboardOrchestrator]] = None) -> FastAPI:
    factory = orchestrator_factory or build_default_orchestrator

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        orchestrator = factory()
        app.state.orchestrator = orchestrator
        await orchestrator.start()
        logger.info("Q-Score started", extra=log_extra(**orchestrator.state()))
        try:
            yield
        finally:
            await orchestrator.stop()

    app = FastAPI(
        title=settings.APP_NAME,
        description="Team points ledger and leaderboard",
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure properly in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def get_orchestrator(request: Request) -> LeaderboardOrchestrator:
        return request.app.state.orchestrator

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "status": "running",
            "endpoints": {
                "health": "/api/health",
                "tasks": "/api/tasks",
                "members": "/api/members",
                "leaderboard": "/api/leaderboard?period=week|all",
                "last_week_winner": "/api/last-week-winner",
                "activity": "/api/activity",
                "log_points": "POST /api/entries",
                "notifications": "/api/notifications",
            },
        }

    @app.get("/api/health")
    async def health_check(orchestrator: LeaderboardOrchestrator = Depends(get_orchestrator)):
        return {
            "status": "healthy",
            "service": "qscore",
            "version": settings.APP_VERSION,
            "state": orchestrator.state(),
        }

    @app.get("/api/tasks")
    async def list_tasks(orchestrator: LeaderboardOrchestrator = Depends(get_orchestrator)):
        return [{"id": task.id, "name": task.name, "points": task.points} for task in orchestrator.tasks]

    @app.get("/api/members")
    async def list_members(orchestrator: LeaderboardOrchestrator = Depends(get_orchestrator)):
        return {
            "members": [_member_payload(member) for member in orchestrator.members],
            "colors": list(MEMBER_COLORS),
            "faces": list(FACE_VARIANTS),
        }

    @app.post("/api/session")
    async def sign_in(body: SignInRequest, orchestrator: LeaderboardOrchestrator = Depends(get_orchestrator)):
        """Register or refresh the member behind an authenticated principal."""
        try:
            member = await orchestrator.sign_in(body.email, body.name, body.avatar)
        except PrincipalRejectedError as exc:
            raise HTTPException(status_code=403, detail=str(exc))
        return {"applied": member is not None, "member": _member_payload(member) if member else None}

    @app.patch("/api/members/{member_id}/profile")
    async def update_profile(
        member_id: str,
        body: ProfileRequest,
        orchestrator: LeaderboardOrchestrator = Depends(get_orchestrator),
    ):
        try:
            member = await orchestrator.update_profile(member_id, color=body.color, face=body.face)
        except QScoreValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        if member is None:
            raise HTTPException(status_code=404, detail="member not found")
        return {"member": _member_payload(member)}

    @app.get("/api/leaderboard")
    async def get_leaderboard(
        period: str = PERIOD_WEEK,
        orchestrator: LeaderboardOrchestrator = Depends(get_orchestrator),
    ):
        if period not in PERIODS:
            raise HTTPException(status_code=400, detail=f"period must be one of {', '.join(PERIODS)}")
        return _leaderboard_payload(orchestrator.leaderboard(period))

    @app.get("/api/last-week-winner")
    async def get_last_week_winner(orchestrator: LeaderboardOrchestrator = Depends(get_orchestrator)):
        winner = orchestrator.last_week_winner()
        if winner is None:
            return {"winner": None}
        return {
            "winner": {
                "member": _member_payload(winner.member),
                "points": winner.points,
                "week_label": winner.week_label,
            }
        }

    @app.get("/api/activity")
    async def get_activity(
        limit: Optional[int] = Query(default=None, ge=0),
        orchestrator: LeaderboardOrchestrator = Depends(get_orchestrator),
    ):
        return {"items": [_activity_payload(item) for item in orchestrator.activity(limit)]}

    @app.post("/api/entries")
    async def log_points(body: LogPointsRequest, orchestrator: LeaderboardOrchestrator = Depends(get_orchestrator)):
        try:
            logged = await orchestrator.log_points(**body.model_dump())
        except QScoreValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        return {
            "applied": logged.applied,
            "entry": _entry_payload(logged.entry),
            "summary": {
                "member_name": logged.member_name,
                "task_name": logged.task_name,
                "points": logged.points,
                "quantity": logged.entry.quantity,
                "daily_bonus": logged.entry.daily_bonus,
            },
        }

    @app.patch("/api/entries/{entry_id}")
    async def update_entry(
        entry_id: str,
        body: UpdateEntryRequest,
        orchestrator: LeaderboardOrchestrator = Depends(get_orchestrator),
    ):
        try:
            applied = await orchestrator.update_entry(entry_id, **body.model_dump())
        except QScoreValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        return {"applied": applied}

    @app.delete("/api/entries/{entry_id}")
    async def delete_entry(entry_id: str, orchestrator: LeaderboardOrchestrator = Depends(get_orchestrator)):
        outcome = await orchestrator.delete_entry(entry_id)
        return {
            "deleted": outcome.deleted,
            "notification": outcome.notification.to_dict() if outcome.notification else None,
        }

    @app.get("/api/notifications")
    async def list_notifications(orchestrator: LeaderboardOrchestrator = Depends(get_orchestrator)):
        return {"notifications": [item.to_dict() for item in orchestrator.notifications.active()]}

    @app.post("/api/notifications/{notification_id}/action")
    async def invoke_notification(
        notification_id: str,
        orchestrator: LeaderboardOrchestrator = Depends(get_orchestrator),
    ):
        applied = await orchestrator.invoke_notification(notification_id)
        return {"applied": applied}

    @app.delete("/api/notifications/{notification_id}")
    async def dismiss_notification(
        notification_id: str,
        orchestrator: LeaderboardOrchestrator = Depends(get_orchestrator),
    ):
        if not orchestrator.dismiss_notification(notification_id):
            raise HTTPException(status_code=404, detail="notification not found")
        return {"dismissed": True}

    @app.post("/api/hooks/changes", status_code=202)
    async def change_hook(
        body: ChangeHookRequest,
        x_webhook_secret: Optional[str] = Header(default=None),
        orchestrator: LeaderboardOrchestrator = Depends(get_orchestrator),
    ):
        """Push entry from the hosted database's change stream."""
        if settings.WEBHOOK_SECRET and x_webhook_secret != settings.WEBHOOK_SECRET:
            raise HTTPException(status_code=401, detail="invalid webhook secret")

        record = body.record or body.old_record or {}
        record_id = record.get("id")
        event = ChangeEvent(
            table=body.table,
            kind=body.type.upper(),
            record_id=str(record_id) if record_id is not None else None,
        )
        await orchestrator.publish_change(event)
        return {"status": "accepted"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "qscore.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
