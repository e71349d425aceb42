from fastapi import APIRouter

from src.jupiter.api.v1 import challenges, nationbuilder, requests

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(nationbuilder.router)
api_router.include_router(challenges.router)
api_router.include_router(requests.router)
