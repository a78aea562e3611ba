from fastapi import APIRouter

from carelog.api.routes import care_events, ingest

api_router = APIRouter()

api_router.include_router(ingest.router, prefix="", tags=["Ingestion"])
api_router.include_router(care_events.router, prefix="", tags=["Care events"])
