# Run from project root: uvicorn listing_agents.main:app --reload

import logging

from fastapi import FastAPI

from listing_agents.api.routes import router
from listing_agents.core.config import LOG_LEVEL
from listing_agents.mcp.server import mcp_router

logging.basicConfig(level=LOG_LEVEL)


app = FastAPI(title="Property Listing Agents")
app.include_router(router)
app.include_router(mcp_router, prefix="/mcp")
