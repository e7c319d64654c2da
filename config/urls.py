"""
URL configuration for the Task Tracker API.
"""
from django.contrib import admin
from django.urls import path
from django.utils import timezone
from ninja import NinjaAPI

from apps.core.exceptions import AppError

api = NinjaAPI(
    title="Task Tracker API",
    version="1.0.0",
    description="Multi-user task tracking with role and ownership based access control",
    docs_url="/docs",
)

from apps.identity.api import router as identity_router
from apps.tasks.api import router as tasks_router

api.add_router("/auth/", identity_router)
api.add_router("/tasks", tasks_router)


@api.exception_handler(AppError)
def handle_app_error(request, exc: AppError):
    return api.create_response(request, exc.to_dict(), status=exc.status_code)


@api.get("/health", auth=None, tags=["Health"])
def health(request):
    """Liveness probe."""
    return {
        "success": True,
        "message": "Server is running",
        "timestamp": timezone.now().isoformat(),
        "version": api.version,
    }


urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', api.urls),
]
