"""Project lifecycle transition rules."""

from clipsa.schemas.project import ProjectStatus

# Status only moves forward; FAILED is reachable from every other state.
_ALLOWED_TRANSITIONS: dict[ProjectStatus, set[ProjectStatus]] = {
    ProjectStatus.CREATED: {ProjectStatus.PROCESSING, ProjectStatus.STITCHING, ProjectStatus.FAILED},
    ProjectStatus.PROCESSING: {ProjectStatus.PROCESSING, ProjectStatus.STITCHING, ProjectStatus.FAILED},
    ProjectStatus.STITCHING: {ProjectStatus.COMPLETED, ProjectStatus.FAILED},
    ProjectStatus.COMPLETED: {ProjectStatus.FAILED},
    ProjectStatus.FAILED: set(),
}

# States from which the fan-in may claim stitching.
STITCHABLE_STATUSES: frozenset[ProjectStatus] = frozenset({ProjectStatus.CREATED, ProjectStatus.PROCESSING})


def is_transition_allowed(old_status: ProjectStatus, new_status: ProjectStatus) -> bool:
    return new_status in _ALLOWED_TRANSITIONS.get(old_status, set())
