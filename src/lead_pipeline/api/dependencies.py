"""FastAPI dependencies shared by the function routes."""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..integrations.registry import ProviderClients
from ..models import get_db
from ..repository import LeadRepository


def get_clients(request: Request) -> ProviderClients:
    """Provider clients built at startup."""
    return request.app.state.clients


async def get_repository(session: AsyncSession = Depends(get_db)) -> LeadRepository:
    return LeadRepository(session)
