"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from shotify.auth import AuthService, TokenIssuer
from shotify.config import get_settings
from shotify.db import DbClient, InMemoryDbClient, SqlDbClient
from shotify.errors import UnauthenticatedError
from shotify.projects import ProjectService
from shotify.proxy import ImageProxy
from shotify.storage import InMemoryStorageClient, S3StorageClient, StorageClient
from shotify.templates import TemplateService
from shotify.uploads import UploadService

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_token_issuer: TokenIssuer | None = None
_image_proxy: ImageProxy | None = None

bearer_scheme = HTTPBearer(auto_error=False)


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so the connection pool is shared across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        logger.warning("No DATABASE_URL configured; using the in-memory database")
        _db_client = InMemoryDbClient()
    else:
        _db_client = SqlDbClient(settings.database_url)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.aws_s3_bucket:
        logger.warning("No AWS_S3_BUCKET configured; using in-memory storage")
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            bucket=settings.aws_s3_bucket,
            region=settings.aws_region,
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            endpoint=settings.aws_endpoint,
            public_base_url=settings.storage_public_base_url,
        )
    return _storage_client


def get_token_issuer() -> TokenIssuer:
    global _token_issuer
    if _token_issuer:
        return _token_issuer

    settings = get_settings()
    _token_issuer = TokenIssuer(
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        expiration_hours=settings.jwt_expiration_hours,
    )
    return _token_issuer


def get_image_proxy() -> ImageProxy:
    global _image_proxy
    if _image_proxy:
        return _image_proxy

    settings = get_settings()
    _image_proxy = ImageProxy(
        timeout=settings.proxy_timeout_seconds,
        allowed_hosts=settings.proxy_allowed_hosts,
    )
    return _image_proxy


def reset_dependencies() -> None:
    """Drop cached clients so the next request rebuilds them (tests)."""
    global _db_client, _storage_client, _token_issuer, _image_proxy
    _db_client = None
    _storage_client = None
    _token_issuer = None
    _image_proxy = None


def get_template_service(db: DbClient = Depends(get_db_client)) -> TemplateService:
    return TemplateService(db)


def get_project_service(
    db: DbClient = Depends(get_db_client),
    templates: TemplateService = Depends(get_template_service),
) -> ProjectService:
    return ProjectService(db, templates)


def get_upload_service(
    storage: StorageClient = Depends(get_storage_client),
) -> UploadService:
    return UploadService(storage, max_bytes=get_settings().max_upload_bytes)


def get_auth_service(
    db: DbClient = Depends(get_db_client),
    tokens: TokenIssuer = Depends(get_token_issuer),
) -> AuthService:
    return AuthService(db, tokens)


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    tokens: TokenIssuer = Depends(get_token_issuer),
) -> str:
    """Resolve the bearer token to a trusted user id."""
    if credentials is None or not credentials.credentials:
        raise UnauthenticatedError(
            "Authorization header must be in format: Bearer <token>",
            message="Authorization header required",
        )
    return tokens.decode_token(credentials.credentials)
