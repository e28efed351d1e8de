"""Pydantic schemas — re‑exported for convenience."""

from progress_engine.schemas.common import ErrorResponse  # noqa: F401
from progress_engine.schemas.attempt import (  # noqa: F401
    AttemptAbandon,
    AttemptDetailRead,
    AttemptRead,
    AttemptResult,
    AttemptStart,
    AttemptStarted,
    AttemptSubmit,
    AutosaveReceiptRead,
    ProgressUpdate,
)
from progress_engine.schemas.progress import (  # noqa: F401
    ParentSkillTree,
    StudentSkillTree,
    TeacherSkillTree,
    XpSummary,
)
from progress_engine.schemas.career import (  # noqa: F401
    CareerCatalogRead,
    CareerEvaluationRead,
    CareerUnlockRead,
)
from progress_engine.schemas.grade import (  # noqa: F401
    AcademicYearConfigIn,
    AcademicYearConfigRead,
    GradeStatusRead,
    MasteryRequirementsIn,
    MasteryRequirementsRead,
    PromotionRead,
)
