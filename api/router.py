from fastapi import APIRouter
from api.transcription import router as transcription_router

api_router = APIRouter()

# Mount the sub-routers
api_router.include_router(transcription_router)
