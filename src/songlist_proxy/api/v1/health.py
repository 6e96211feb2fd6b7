from fastapi import APIRouter

router = APIRouter()


@router.get("/", summary="Health check")
async def health_check():
    """Liveness probe; does not touch the song catalog."""
    return {"status": "ok"}
