# mypy: ignore-errors

from fastapi import APIRouter

from sheetmerge.controllers import merge_controller, probe, session_controller


router = APIRouter()

router.include_router(probe.router, tags=["probe"])
router.include_router(session_controller.router)
router.include_router(merge_controller.router)
