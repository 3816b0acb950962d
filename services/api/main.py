"""HTTP entry point: plan workflows from prompts, store them and queue their runs."""

from fastapi import FastAPI
from services.api.routes.workflow import router as workflow_router
from services.api.routes.tools import registry, router as tools_router
from services.api.middleware import CorrelationIdMiddleware
from shared.logging_config import setup_logging

setup_logging("api")

app = FastAPI(title="Task Automation Agent API", version="1.0.0")
app.add_middleware(CorrelationIdMiddleware)

app.include_router(workflow_router, tags=["Workflows"])
app.include_router(tools_router, tags=["Tools"])


@app.get("/health")
async def health():
    return {"status": "healthy", "tools": registry.tool_names()}
