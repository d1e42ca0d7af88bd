from fastapi import Depends, HTTPException
from fastapi.security.api_key import APIKeyHeader

from sheetmerge._config import config
from sheetmerge.services.merge_session import MergeSession, session_store


# API Key authentication
API_KEY_NAME = "X-API-Key"
api_key_header = APIKeyHeader(name=API_KEY_NAME, auto_error=False)


async def get_api_key(api_key_header: str | None = Depends(api_key_header)):
    # No key configured means the API is open
    if config.API_KEY is None:
        return None

    if api_key_header is None:
        raise HTTPException(status_code=401, detail="API Key header missing")

    if api_key_header != config.API_KEY:
        raise HTTPException(status_code=403, detail="Invalid API Key")

    return api_key_header


async def get_merge_session(session_id: str) -> MergeSession:
    return session_store.get(session_id)
