from fastapi import APIRouter

from pingradius.api.routes import activities
from pingradius.api.routes import feed
from pingradius.api.routes import users

api_router = APIRouter(prefix="/v1")

api_router.include_router(users.router)
api_router.include_router(activities.router)
api_router.include_router(feed.router)
