"""API dependencies."""

from fastapi import Request

from airsense.services import IngestionService


def get_ingestion_service(request: Request) -> IngestionService:
    """The IngestionService create_app() attached to this app."""
    return request.app.state.ingestion_service
