"""
Project discovery. A project is a non-hidden directory directly under the
workspace path; its id is the directory name. Nothing here is persisted.
"""

import json
import logging
import os
import shlex
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# Ledger / session / conversation key for messages not tied to a project
WORKSPACE_PROJECT_ID = "__workspace__"


@dataclass
class Project:
    id: str
    name: str
    root_path: str
    # Long-running dev command (e.g. "npm run dev"), only set from a projects file
    command: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"id": self.id, "name": self.name, "path": self.root_path}
        if self.command:
            data["cmd"] = self.command
        return data


def _load_static_projects(projects_file: str) -> List[Project]:
    """Fallback list used when no workspace directory is available."""
    if not os.path.exists(projects_file):
        return []
    try:
        with open(projects_file, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to read {projects_file}: {e}")
        return []
    projects = []
    for item in data if isinstance(data, list) else []:
        path = item.get("path") if isinstance(item, dict) else None
        if not path or not os.path.isdir(path):
            continue
        pid = str(item.get("id") or os.path.basename(os.path.normpath(path)))
        command = item.get("cmd")
        if command and isinstance(item.get("args"), list):
            command = " ".join([command] + [shlex.quote(str(a)) for a in item["args"]])
        projects.append(Project(
            id=pid,
            name=str(item.get("name") or pid),
            root_path=os.path.abspath(path),
            command=command or None,
        ))
    return projects


def load_projects(workspace_path: str, projects_file: Optional[str] = None) -> List[Project]:
    """List projects fresh from disk, sorted by name."""
    if not workspace_path or not os.path.isdir(workspace_path):
        return _load_static_projects(projects_file) if projects_file else []
    root = os.path.abspath(workspace_path)
    projects = []
    try:
        for entry in sorted(os.scandir(root), key=lambda e: e.name):
            if entry.is_dir() and not entry.name.startswith("."):
                projects.append(Project(id=entry.name, name=entry.name, root_path=entry.path))
    except OSError as e:
        logger.error(f"Error loading projects from {root}: {e}")
    return projects


def resolve_project(project_id: Optional[str], workspace_path: str,
                    projects_file: Optional[str] = None) -> Project:
    """Find a project by id; unknown or empty ids fall back to the workspace root."""
    if project_id:
        for project in load_projects(workspace_path, projects_file):
            if project.id == project_id:
                return project
    root = os.path.abspath(workspace_path or ".")
    return Project(
        id=project_id or WORKSPACE_PROJECT_ID,
        name=os.path.basename(root) or root,
        root_path=root,
    )
