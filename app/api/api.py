from fastapi import APIRouter
from app.api.routes.public import router as public_router
from app.api.routes.operator import router as operator_router

api_router = APIRouter(prefix="/api")
api_router.include_router(public_router)
api_router.include_router(operator_router)
