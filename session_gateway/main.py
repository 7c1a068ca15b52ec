from typing import Any, Callable, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from logging import getLogger
from sqlalchemy.engine import Engine

from . import config, gate
from .app_logging import setup_logger
from .claims import parser_from_config
from .exceptions import AccessDenied, ConfigurationError, InternalError, \
    NotAuthorized, UnknownSession, UpstreamAuthError, ValidationError
from .openid import OpenIDClient
from .roles import get_resolver
from .routes import router
from .store import util


def _reason(status_code: int, reason: str) -> JSONResponse:
    return JSONResponse({'reason': reason}, status_code=status_code)


def create_app(identity_provider: Optional[Any] = None,
               engine: Optional[Engine] = None,
               **overrides: Any) -> FastAPI:
    """
    Create the session gateway application.

    Parameters
    ----------
    identity_provider : object
        Exchanges authorization codes for claims. Defaults to an
        :class:`.OpenIDClient` built from the ``MU_APPLICATION_AUTH_*``
        settings.
    engine : :class:`sqlalchemy.engine.Engine`
        Defaults to an engine for ``DATABASE_URI``.
    overrides
        Settings that take precedence over :mod:`.config`.

    """
    settings = config.as_extra()
    settings.update(overrides)
    setup_logger(settings['LOG_LEVEL'])
    logger = getLogger(__name__)

    if settings['ORGANIZATION_POLICY'] not in gate.POLICIES:
        raise ConfigurationError(
            f'Unknown organization policy: {settings["ORGANIZATION_POLICY"]}')
    role_resolver = get_resolver(settings['ROLE_RESOLVER'], settings)
    if identity_provider is None:
        identity_provider = OpenIDClient.from_config(settings)

    if engine is None:
        engine = util.create_db_engine(settings['DATABASE_URI'])
    util.create_all(engine)

    logger.info(f"SERVER_ROOT_PATH: {settings['SERVER_ROOT_PATH']}")
    logger.info(f"ROLE_RESOLVER: {settings['ROLE_RESOLVER']}")
    logger.info(f"ORGANIZATION_POLICY: {settings['ORGANIZATION_POLICY']}")
    logger.info(f"SESSION_HEADER: {settings['SESSION_HEADER']}")

    app = FastAPI(
        root_path=settings['SERVER_ROOT_PATH'],
        idp=identity_provider,
        engine=engine,
        open_session=util.session_factory(engine),
        role_resolver=role_resolver,
        claim_parser=parser_from_config(settings),
        **settings
    )

    app.include_router(router)

    @app.exception_handler(ValidationError)
    @app.exception_handler(UnknownSession)
    async def bad_request(request: Request, exc: Exception) -> JSONResponse:
        return _reason(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(RequestValidationError)
    async def bad_body(request: Request,
                       exc: RequestValidationError) -> JSONResponse:
        return _reason(status.HTTP_400_BAD_REQUEST, 'Malformed request')

    @app.exception_handler(UpstreamAuthError)
    async def upstream_failed(request: Request,
                              exc: UpstreamAuthError) -> JSONResponse:
        logger.info('Authentication at the provider failed: %s', exc)
        return _reason(status.HTTP_401_UNAUTHORIZED, exc.reason)

    @app.exception_handler(NotAuthorized)
    async def not_authorized(request: Request,
                             exc: NotAuthorized) -> JSONResponse:
        return _reason(status.HTTP_401_UNAUTHORIZED, str(exc))

    @app.exception_handler(AccessDenied)
    async def access_denied(request: Request,
                            exc: AccessDenied) -> JSONResponse:
        return _reason(status.HTTP_403_FORBIDDEN, exc.reason)

    @app.exception_handler(InternalError)
    @app.exception_handler(Exception)
    async def internal_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error('Unhandled error: %s', exc, exc_info=exc)
        return _reason(status.HTTP_500_INTERNAL_SERVER_ERROR,
                       'Internal server error')

    @app.middleware("http")
    async def apply_response_headers(request: Request, call_next: Callable) -> Response:
        """Clear the authorization caches after every mutation."""
        response: Response = await call_next(request)
        if request.method in ('POST', 'DELETE') and response.status_code < 500:
            response.headers[settings['CACHE_CLEAR_HEADER']] = 'CLEAR'
        return response

    return app
