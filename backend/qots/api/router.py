"""
Main API router
"""
from fastapi import APIRouter
from qots.api import auth

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
