"""API route package — imports all routers for main.py."""

from progress_engine.api.health import router as health_router  # noqa: F401
from progress_engine.api.attempts import router as attempts_router  # noqa: F401
from progress_engine.api.students import router as students_router  # noqa: F401
from progress_engine.api.careers import router as careers_router  # noqa: F401
from progress_engine.api.admin import router as admin_router  # noqa: F401
