from fastapi import APIRouter

from app.api.v1.routes_files import router as files_router
from app.api.v1.routes_validation import router as validation_router
from app.api.v1.routes_recommendations import router as recommendations_router


api_router = APIRouter()

api_router.include_router(files_router, prefix="/files", tags=["files"])
api_router.include_router(validation_router, prefix="/validation", tags=["validation"])
api_router.include_router(recommendations_router, tags=["recommendations"])
