"""Provides the session endpoints."""
from logging import getLogger
from typing import Optional

from dateutil import parser as date_parser
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from . import get_db, get_session_handle, get_session_manager
from .exceptions import ValidationError
from .sessions import SessionManager
from .store import util

logger = getLogger(__name__)

router = APIRouter()


class LoginRequest(BaseModel):
    authorizationCode: Optional[str] = None


@router.post('/sessions', status_code=status.HTTP_201_CREATED)
def login(body: LoginRequest,
          handle: Optional[str] = Depends(get_session_handle),
          manager: SessionManager = Depends(get_session_manager)
          ) -> JSONResponse:
    """Log in with the authorization code issued by the identity provider."""
    view = manager.create_session(handle, body.authorizationCode)
    return JSONResponse(view.to_payload(),
                        status_code=status.HTTP_201_CREATED)


@router.delete('/sessions/current', status_code=status.HTTP_204_NO_CONTENT)
def logout(handle: Optional[str] = Depends(get_session_handle),
           manager: SessionManager = Depends(get_session_manager)
           ) -> Response:
    manager.destroy_session(handle)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get('/sessions/current')
def current_session(handle: Optional[str] = Depends(get_session_handle),
                    manager: SessionManager = Depends(get_session_manager)
                    ) -> JSONResponse:
    view = manager.get_current_session(handle)
    return JSONResponse(view.to_payload())


@router.delete('/sessions', status_code=status.HTTP_204_NO_CONTENT)
def purge(uuid: Optional[str] = None,
          beforeDatetime: Optional[str] = None,
          handle: Optional[str] = Depends(get_session_handle),
          manager: SessionManager = Depends(get_session_manager)
          ) -> Response:
    """
    Purge the sessions of the person ``uuid``, those last modified before
    ``beforeDatetime``, or all of them. Admins only.
    """
    if uuid is not None and beforeDatetime is not None:
        raise ValidationError('Provide either uuid or beforeDatetime')
    before = None
    if beforeDatetime is not None:
        try:
            before = util.as_utc(date_parser.isoparse(beforeDatetime))
        except ValueError as e:
            raise ValidationError(f'Malformed beforeDatetime: {e}') from e
    count = manager.purge_sessions(handle, person_id=uuid, before=before)
    return Response(status_code=status.HTTP_204_NO_CONTENT,
                    headers={'X-Purged-Sessions': str(count)})


@router.get('/status')
def get_status(db: Session = Depends(get_db)) -> JSONResponse:
    """Liveness check, including the store."""
    if not util.is_available(db):
        return JSONResponse({'reason': 'Database unavailable'},
                            status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return JSONResponse({'status': 'ok'})
