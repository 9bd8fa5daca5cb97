"""
HTTP routes for the Shotify API.

Every JSON response uses the ``ApiResponse`` envelope; errors raised by the
services are turned into the same envelope by the handlers in ``shotify.app``.
"""

from __future__ import annotations

import logging
import os

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from shotify.auth import AuthService
from shotify.dependencies import (
    get_auth_service,
    get_current_user_id,
    get_image_proxy,
    get_project_service,
    get_template_service,
    get_upload_service,
)
from shotify.models import ProjectPatch
from shotify.projects import ProjectService
from shotify.proxy import ImageProxy
from shotify.schemas import (
    ApiResponse,
    AuthOut,
    CreateProjectRequest,
    LoginRequest,
    ProjectOut,
    RegisterRequest,
    SignedUrlOut,
    TemplateOut,
    UpdateProjectRequest,
    UploadOut,
    UserOut,
)
from shotify.templates import TemplateService
from shotify.uploads import UploadService

logger = logging.getLogger(__name__)

router = APIRouter()


def _ok(message: str, data=None) -> ApiResponse:
    return ApiResponse(success=True, message=message, data=data)


def _upload_size(upload: UploadFile) -> int:
    if upload.size is not None:
        return upload.size
    upload.file.seek(0, os.SEEK_END)
    size = upload.file.tell()
    upload.file.seek(0)
    return size


# Auth


@router.post("/auth/register", response_model=ApiResponse[AuthOut], status_code=201)
def register(payload: RegisterRequest, auth: AuthService = Depends(get_auth_service)):
    result = auth.register(payload.email, payload.password, payload.name)
    return _ok("User registered successfully", AuthOut.model_validate(result.as_dict()))


@router.post("/auth/login", response_model=ApiResponse[AuthOut])
def login(payload: LoginRequest, auth: AuthService = Depends(get_auth_service)):
    result = auth.login(payload.email, payload.password)
    return _ok("Login successful", AuthOut.model_validate(result.as_dict()))


@router.get("/auth/me", response_model=ApiResponse[UserOut])
def me(
    user_id: str = Depends(get_current_user_id),
    auth: AuthService = Depends(get_auth_service),
    projects: ProjectService = Depends(get_project_service),
):
    user = auth.get_user(user_id).as_dict()
    user["project_count"] = projects.count_user_projects(user_id)
    return _ok("User retrieved successfully", UserOut.model_validate(user))


# Templates


@router.get("/get-templates", response_model=ApiResponse[list[TemplateOut]])
def get_templates(
    platform: str | None = Query(None, max_length=32),
    templates: TemplateService = Depends(get_template_service),
):
    items = [TemplateOut.model_validate(t.as_dict()) for t in templates.find_all(platform)]
    return _ok("Templates retrieved successfully", items)


@router.get("/get-template-byId/{template_id}", response_model=ApiResponse[TemplateOut])
def get_template_by_id(
    template_id: str, templates: TemplateService = Depends(get_template_service)
):
    template = templates.get_template(template_id)
    return _ok("Template retrieved successfully", TemplateOut.model_validate(template.as_dict()))


# Projects


@router.post("/create-project", response_model=ApiResponse[ProjectOut], status_code=201)
def create_project(
    payload: CreateProjectRequest,
    user_id: str = Depends(get_current_user_id),
    projects: ProjectService = Depends(get_project_service),
):
    detail = projects.create_project(user_id, payload.template_id, payload.name)
    return _ok("Project created successfully", ProjectOut.model_validate(detail.as_dict()))


@router.get("/get-projects", response_model=ApiResponse[list[ProjectOut]])
def get_projects(
    user_id: str = Depends(get_current_user_id),
    projects: ProjectService = Depends(get_project_service),
):
    items = [ProjectOut.model_validate(p.as_dict()) for p in projects.get_user_projects(user_id)]
    return _ok("Projects retrieved successfully", items)


@router.get("/get-project-byId/{project_id}", response_model=ApiResponse[ProjectOut])
def get_project_by_id(
    project_id: str,
    user_id: str = Depends(get_current_user_id),
    projects: ProjectService = Depends(get_project_service),
):
    detail = projects.get_project_by_id(project_id, user_id)
    return _ok("Project retrieved successfully", ProjectOut.model_validate(detail.as_dict()))


@router.put("/update-project/{project_id}", response_model=ApiResponse[ProjectOut])
def update_project(
    project_id: str,
    payload: UpdateProjectRequest,
    user_id: str = Depends(get_current_user_id),
    projects: ProjectService = Depends(get_project_service),
):
    patch = ProjectPatch(
        name=payload.name.strip() if payload.name else None,
        thumbnail=payload.thumbnail,
        project_config=payload.project_config.to_record() if payload.project_config else None,
    )
    updated = projects.update_project(project_id, user_id, patch)
    return _ok("Project updated successfully", ProjectOut.model_validate(updated.as_dict()))


@router.delete("/delete-projects/{project_id}", response_model=ApiResponse[dict])
def delete_project(
    project_id: str,
    user_id: str = Depends(get_current_user_id),
    projects: ProjectService = Depends(get_project_service),
):
    projects.delete_project(project_id, user_id)
    return _ok("Project deleted successfully")


# Uploads


@router.post("/uploads/image", response_model=ApiResponse[UploadOut])
def upload_image(
    image: UploadFile = File(...),
    user_id: str = Depends(get_current_user_id),
    uploads: UploadService = Depends(get_upload_service),
):
    try:
        result = uploads.upload_image(
            user_id, image.filename or "", image.file, _upload_size(image)
        )
    finally:
        image.file.close()
    return _ok("Image uploaded successfully", UploadOut.model_validate(result.as_dict()))


@router.delete("/uploads/image", response_model=ApiResponse[dict])
def delete_image(
    key: str = Query(..., min_length=1),
    user_id: str = Depends(get_current_user_id),
    uploads: UploadService = Depends(get_upload_service),
):
    uploads.delete_image(user_id, key)
    return _ok("Image deleted successfully")


@router.get("/uploads/image-url", response_model=ApiResponse[SignedUrlOut])
def sign_image_url(
    key: str = Query(..., min_length=1),
    expires_in: int = Query(3600, ge=60, le=86400),
    user_id: str = Depends(get_current_user_id),
    uploads: UploadService = Depends(get_upload_service),
):
    url = uploads.presign_image(user_id, key, expires_in=expires_in)
    return _ok("Image url signed successfully", SignedUrlOut(url=url, key=key))


# Proxy


@router.get("/proxy-image")
def proxy_image(
    url: str = Query(""),
    proxy: ImageProxy = Depends(get_image_proxy),
):
    image = proxy.fetch(url)
    headers = {
        "Cache-Control": "public, max-age=86400",
        "Access-Control-Allow-Origin": "*",
    }
    return StreamingResponse(
        image.iter_bytes(),
        media_type=image.content_type,
        headers=headers,
        background=BackgroundTask(image.close),
    )
