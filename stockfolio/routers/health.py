from fastapi import APIRouter

from stockfolio import __version__

router = APIRouter(tags=["Health"])


@router.get("/healthz")
async def healthz():
    return {"status": "ok", "version": __version__}
