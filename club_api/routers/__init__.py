"""
API routers package.
"""
from club_api.routers.challenge_data import router as challenge_data_router
from club_api.routers.challenge_generator import router as challenge_generator_router
from club_api.routers.health import router as health_router
from club_api.routers.photos import router as photos_router
from club_api.routers.songs import router as songs_router

__all__ = [
    "challenge_data_router",
    "challenge_generator_router",
    "health_router",
    "photos_router",
    "songs_router",
]
