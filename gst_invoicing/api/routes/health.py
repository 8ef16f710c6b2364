from fastapi import APIRouter

from gst_invoicing.config.settings import settings

router = APIRouter()


@router.get("/health")
async def health():
    return {"status": "ok", "message": f"{settings.APP_NAME} running"}
