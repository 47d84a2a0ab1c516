from .editors import router as editors_router
from .packages import router as packages_router
from .projects import router as projects_router
from .templates import router as templates_router

__all__ = ["editors_router", "packages_router", "projects_router", "templates_router"]
