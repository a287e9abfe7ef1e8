from fastapi import APIRouter

router = APIRouter()


@router.get("/", name="health.root")
async def root() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/healthz", name="health.healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}
