"""
main.py

Entry point for the VDCR Revision Turnaround API.

Wires the in-memory infrastructure into the FastAPI app, optionally exposes
the endpoints as MCP tools, and starts uvicorn.

Usage
-----
    # Option 1 — run directly
    python main.py

    # Option 2 — run via uvicorn CLI (recommended for development)
    uvicorn main:app --reload --port 8000

Once running, open your browser at:
    http://localhost:8000/docs      ← Swagger UI
    http://localhost:8000/health    ← liveness check
    http://localhost:8000/mcp       ← MCP endpoint (when VDCR_MCP_ENABLED)

Quick-start walkthrough
-----------------------
1.  POST /api/v1/document-records                          — register a document
2.  POST /api/v1/document-records/{id}/revision-events/submit
                                                           — send it to the client
3.  POST /api/v1/document-records/{id}/revision-events/receive
                                                           — mark it received back
4.  GET  /api/v1/document-records/{id}/revision-history    — turnaround statistics
5.  GET  /api/v1/projects/{project_id}/document-records    — register with status
"""

import logging

import uvicorn
from fastapi_mcp import FastApiMCP

from api import app, get_uow
from config import configure_logging, settings
from infrastructure import InMemoryUnitOfWork

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Wire the concrete Unit of Work into the FastAPI dependency system.
# To swap databases, replace InMemoryUnitOfWork with your SQL implementation.
# ---------------------------------------------------------------------------

app.dependency_overrides[get_uow] = lambda: InMemoryUnitOfWork()

if settings.mcp_enabled:
    mcp = FastApiMCP(app, name=settings.app_name)
    mcp.mount_http()
    logger.info("MCP tools mounted at /mcp")


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )
