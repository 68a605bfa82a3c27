# taskflow/core/policy.py
"""Project visibility.

Admins see everything. Everyone else sees projects of their own department
plus whatever ``settings.DEPARTMENT_VISIBILITY`` grants that department
(by default Digital may also see Design).
"""
from typing import Dict, Iterable, Optional, Set
from taskflow.config import settings


def visible_department_names(department_name: Optional[str], table: Optional[Dict[str, Set[str]]] = None) -> Set[str]:
    if not department_name:
        return set()
    table = settings.visibility_table if table is None else table
    own = department_name.lower()
    visible = {own}
    for key, extra in table.items():
        # Policy keys match on prefix so "digital" also covers "Digital Marketing"
        if own == key or own.startswith(key + " "):
            visible |= extra
    return visible


def _matches(name: str, visible: Set[str]) -> bool:
    lowered = name.lower()
    return any(lowered == v or lowered.startswith(v + " ") for v in visible)


def can_access_project(user, project, departments: Dict[int, str], table: Optional[Dict[str, Set[str]]] = None) -> bool:
    """``departments`` maps department id -> name."""
    if user.role == "admin":
        return True
    if project.department_id is None:
        return True
    if user.department_id is None:
        return False
    if user.department_id == project.department_id:
        return True
    visible = visible_department_names(departments.get(user.department_id), table)
    project_dept = departments.get(project.department_id)
    return bool(project_dept) and _matches(project_dept, visible)


def filter_accessible(user, projects: Iterable, departments: Dict[int, str]) -> list:
    return [p for p in projects if can_access_project(user, p, departments)]
