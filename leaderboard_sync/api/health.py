from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request):
    scheduler = getattr(request.app.state, "scheduler", None)
    return {
        "status": "ok",
        "service": "leaderboard-sync",
        "scheduler_running": bool(scheduler and scheduler.running),
    }
