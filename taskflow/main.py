# taskflow/main.py
import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import exc as sa_exc
from taskflow.config import settings
from taskflow.core.exceptions import TaskFlowError
from taskflow.database import Base, engine
import taskflow.models  # noqa: F401  registers every table on Base.metadata
from taskflow.routers import auth, departments, users, projects, stages, tasks

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("taskflow")


app = FastAPI(title="TaskFlow - Project & Task Workflow", version="1.0")

# Include Routers
app.include_router(auth.router)
app.include_router(departments.router)
app.include_router(users.router)
app.include_router(projects.router)
app.include_router(stages.router)
app.include_router(tasks.router)


@app.exception_handler(TaskFlowError)
async def taskflow_error_handler(request: Request, exc: TaskFlowError):
    logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# Create DB Tables (for dev only, use Alembic in prod)
@app.on_event("startup")
async def startup_event():
    # create tables (async). ignore duplicate-object errors from previous partial runs.
    async with engine.begin() as conn:
        try:
            await conn.run_sync(Base.metadata.create_all)
        except sa_exc.IntegrityError as e:
            msg = str(getattr(e, "orig", e))
            if "duplicate key value violates unique constraint" in msg or "already exists" in msg:
                logging.warning("Ignored duplicate DDL error during create_all: %s", msg)
            else:
                raise

@app.get("/")
def read_root():
    return {"message": "Welcome to TaskFlow"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("taskflow.main:app", host="0.0.0.0", port=8000, reload=True)
