import logging

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gradeflow.core.config import settings
from gradeflow.core.error_handlers import add_error_handlers
from gradeflow.db.supabase import get_supabase, run_query
from gradeflow.modules.grading.router import router as grading_router
from gradeflow.modules.marks.router import router as marks_router
from gradeflow.modules.approval.router import router as approval_router
from gradeflow.modules.reports.router import router as reports_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
# HTTP client debug logs are noisy
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Gradeflow",
    description="Marks submission, approval and report card generation for schools",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

add_error_handlers(app)

# Root route
@app.get("/")
def root():
    return {"message": "Gradeflow is running"}

# Health check route
@app.get("/health")
def health_check(client=Depends(get_supabase)):
    """Check if the service and database connection are healthy"""
    try:
        run_query(client.table("grading_config").select("id").limit(1), "check database")
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        logger.warning("Health check failed: %s", e)
        return {"status": "unhealthy", "database": f"error: {str(e)}"}

# Include routers
app.include_router(grading_router, prefix="/grading", tags=["Grading"])
app.include_router(marks_router, prefix="/marks", tags=["Marks"])
app.include_router(approval_router, prefix="/approvals", tags=["Approval"])
app.include_router(reports_router, prefix="/reports", tags=["Reports"])
