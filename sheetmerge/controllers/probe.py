from fastapi import APIRouter

from sheetmerge._config import config


router = APIRouter()


@router.get("/ping")
async def ping():
    return {"status": "ok", "environment": config.ENVIRONMENT}
