"""
Pydantic schemas for the health endpoint.
"""
from datetime import datetime
from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """
    Schema for health check response.
    """
    status: str = Field(..., description="Service status")
    database: str = Field(..., description="Database connection status")
    timestamp: datetime = Field(..., description="Current server time")
