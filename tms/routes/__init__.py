"""
tms/routes/__init__.py
Aggregates every API router under one APIRouter
"""
from fastapi import APIRouter

from tms.routes import assessments, courses, learners, progress

api_router = APIRouter()
api_router.include_router(courses.router)
api_router.include_router(assessments.router)
api_router.include_router(progress.router)
api_router.include_router(learners.router)
