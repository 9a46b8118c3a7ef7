"""Shared FastAPI dependencies: caller identity and the per-request file service."""
from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from filevault.database import get_db
from filevault.repositories.file_record_repo import FileRecordRepository
from filevault.services.errors import UnauthenticatedError
from filevault.services.file_service import FileService

security = HTTPBearer(auto_error=False)


async def get_current_user_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """Resolve the bearer token to a user id through the configured verifier."""
    if not credentials or not credentials.credentials:
        raise UnauthenticatedError()
    return await request.app.state.identity_verifier.verify(credentials.credentials)


async def get_file_service(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> FileService:
    state = request.app.state
    return FileService(
        repo=FileRecordRepository(db),
        storage=state.file_storage,
        validator=state.upload_validator,
        notifier=state.notifier,
    )
