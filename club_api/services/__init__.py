"""
Services package.
Contains business logic and external service integrations.
"""
from club_api.services.challenge_data import ChallengeDataRepository
from club_api.services.challenge_generator import ChallengeGenerator
from club_api.services.object_storage import ObjectStorageService
from club_api.services.photo import PhotoRepository
from club_api.services.song import SongCatalogCache, SongRepository

__all__ = [
    "ChallengeDataRepository",
    "ChallengeGenerator",
    "ObjectStorageService",
    "PhotoRepository",
    "SongCatalogCache",
    "SongRepository",
]
