from fastapi import APIRouter

from paperly.modules.auth.router import router as auth_router
from paperly.modules.notifications.router import router as notifications_router
from paperly.modules.realtime.router import router as realtime_router
from paperly.modules.submissions.admin_router import router as admin_submissions_router
from paperly.modules.submissions.router import router as submissions_router
from paperly.modules.teachers.admin_router import router as admin_teachers_router
from paperly.modules.teachers.router import router as teachers_router

api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["Authentication"])

api_router.include_router(admin_teachers_router, prefix="/admin", tags=["Admin - Teachers"])

api_router.include_router(
    admin_submissions_router,
    prefix="/admin",
    tags=["Admin - Submissions"],
)

api_router.include_router(teachers_router, prefix="/teacher", tags=["Teacher"])

api_router.include_router(submissions_router, prefix="/submission", tags=["Submission"])

api_router.include_router(
    notifications_router, prefix="/notifications", tags=["Notifications"]
)

api_router.include_router(realtime_router, prefix="/realtime", tags=["Realtime"])
