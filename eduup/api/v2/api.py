# Fichier: eduup/api/v2/api.py
from fastapi import APIRouter
from .endpoints import (
    user_router,
    catalog_router,
    play_router,
    progress_router,
    leaderboard_router,
    profile_router,
    chat_router,
    admin_exercise_router,
)

api_router = APIRouter()

api_router.include_router(user_router.router, prefix="/users", tags=["Users"])
api_router.include_router(catalog_router.router, prefix="/catalog", tags=["Catalog"])
api_router.include_router(play_router.router, prefix="/play", tags=["Play"])
api_router.include_router(progress_router.router, prefix="/progress", tags=["Progress"])
api_router.include_router(leaderboard_router.router, prefix="/leaderboard", tags=["Leaderboard"])
api_router.include_router(profile_router.router, prefix="/profile", tags=["Profile"])
api_router.include_router(chat_router.router, prefix="/chat", tags=["Chat"])
api_router.include_router(admin_exercise_router.router, prefix="/admin", tags=["Admin"])
