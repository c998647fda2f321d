from fastapi import APIRouter

from app.api.v1.endpoints import (
    profiles,
    tutors,
    sessions,
    payments,
    stripe_webhook,
    ai,
    conversations,
    reviews,
    enrollments,
    notifications,
    monitoring,
)

api_router = APIRouter()

# Include endpoint routers
api_router.include_router(profiles.router, prefix="/profiles", tags=["profiles"])
api_router.include_router(tutors.router, prefix="/tutors", tags=["tutors"])
api_router.include_router(sessions.router, prefix="/sessions", tags=["sessions"])
api_router.include_router(payments.router, prefix="/payments", tags=["payments"])
api_router.include_router(stripe_webhook.router, prefix="/payments", tags=["webhooks"])
api_router.include_router(ai.router, prefix="/ai", tags=["ai"])
api_router.include_router(conversations.router, prefix="/conversations", tags=["messaging"])
api_router.include_router(reviews.router, prefix="/reviews", tags=["reviews"])
api_router.include_router(enrollments.router, prefix="/enrollments", tags=["enrollments"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
api_router.include_router(monitoring.router, prefix="/monitoring", tags=["monitoring"])
