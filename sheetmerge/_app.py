from fastapi import FastAPI

from ._config import config


app = FastAPI(
    title="Sheet Merge",
    description="Enrich a master spreadsheet with columns looked up from other sheets",
    version="0.1.0",
    debug=config.ENVIRONMENT == "local",
)
