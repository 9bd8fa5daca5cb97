"""
User projects: instantiation from templates, ownership-scoped edits and reads.

Every lookup that touches a single project filters by project id *and* owner
in one predicate, so a project belonging to someone else is reported exactly
like a missing one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from shotify.db import DbClient
from shotify.errors import InvalidArgumentError, NotFoundError, ShotifyError
from shotify.models import (
    ProjectPatch,
    ProjectRecord,
    TemplateRecord,
    build_project_config,
    is_valid_id,
    new_id,
)
from shotify.templates import TemplateService

logger = logging.getLogger(__name__)


@dataclass
class ProjectDetail:
    project: ProjectRecord
    template: Optional[TemplateRecord] = None

    def as_dict(self) -> dict:
        payload = self.project.as_dict()
        payload["template"] = self.template.as_dict() if self.template else None
        return payload


def _require_id(value: str, label: str) -> str:
    if not is_valid_id(value):
        raise InvalidArgumentError(f"invalid {label} ID")
    return value


class ProjectService:
    def __init__(self, db: DbClient, templates: TemplateService):
        self.db = db
        self.templates = templates

    def create_project(self, user_id: str, template_id: str, name: str) -> ProjectDetail:
        _require_id(user_id, "user")
        _require_id(template_id, "template")
        if not name or not name.strip():
            raise InvalidArgumentError("project name is required")

        template = self.templates.find_by_id(template_id)
        if template is None:
            raise NotFoundError("template not found", message="Template not found")

        project = ProjectRecord(
            id=new_id(),
            user_id=user_id,
            template_id=template.id,
            name=name.strip(),
            project_config=build_project_config(template.json_config),
        )
        created = self.db.create_project(project)
        logger.info(
            "Created project %s for user %s from template %s",
            created.id,
            user_id,
            template.id,
        )
        return ProjectDetail(project=created, template=template)

    def get_user_projects(self, user_id: str) -> list[ProjectRecord]:
        _require_id(user_id, "user")
        return self.db.list_projects_for_user(user_id)

    def count_user_projects(self, user_id: str) -> int:
        _require_id(user_id, "user")
        return self.db.count_projects_for_user(user_id)

    def get_project_by_id(self, project_id: str, user_id: str) -> ProjectDetail:
        _require_id(project_id, "project")
        _require_id(user_id, "user")
        project = self.db.get_project_for_user(project_id, user_id)
        if project is None:
            raise NotFoundError("project not found", message="Project not found")
        return ProjectDetail(project=project, template=self._origin_template(project))

    def update_project(
        self, project_id: str, user_id: str, patch: ProjectPatch
    ) -> ProjectRecord:
        """
        Apply a partial update. ``project_config`` replaces the stored config
        wholesale; there is no merge inside canvas, layers or exports.
        """
        _require_id(project_id, "project")
        _require_id(user_id, "user")

        changes: dict = {}
        if patch.name:
            changes["name"] = patch.name
        if patch.thumbnail:
            changes["thumbnail"] = patch.thumbnail
        if patch.project_config is not None:
            changes["project_config"] = patch.project_config

        updated = self.db.update_project(project_id, user_id, changes)
        if updated is None:
            raise NotFoundError("project not found", message="Project not found")
        return updated

    def delete_project(self, project_id: str, user_id: str) -> None:
        _require_id(project_id, "project")
        _require_id(user_id, "user")
        if not self.db.delete_project(project_id, user_id):
            raise NotFoundError(
                "project not found or unauthorized", message="Project not found"
            )
        logger.info("Deleted project %s for user %s", project_id, user_id)

    def _origin_template(self, project: ProjectRecord) -> Optional[TemplateRecord]:
        # The template link is provenance only; losing it never fails a read.
        try:
            template = self.templates.find_by_id(project.template_id)
        except ShotifyError:
            logger.warning(
                "Template lookup failed for project %s", project.id, exc_info=True
            )
            return None
        if template is None:
            logger.info(
                "Template %s of project %s no longer exists",
                project.template_id,
                project.id,
            )
        return template
