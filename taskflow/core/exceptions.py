# taskflow/core/exceptions.py
"""Domain errors raised by the workflow services.

Routers do not catch these; ``taskflow.main`` maps them to HTTP responses.
"""


class TaskFlowError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TaskFlowError):
    """Rejected input: duplicate names, blank required fields, missing targets."""
    status_code = 400


class NotFoundError(TaskFlowError):
    status_code = 404


class InvalidStageError(NotFoundError):
    """A stage id that does not resolve inside the task's project."""

    def __init__(self, stage_id):
        super().__init__(f"Stage {stage_id} not found in project")
        self.stage_id = stage_id


class MissingAssigneeError(ValidationError):
    def __init__(self, message: str = "Could not find the task assignee"):
        super().__init__(message)
