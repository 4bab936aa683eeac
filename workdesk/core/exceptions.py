class WorkdeskError(Exception):
    """Base class for all Workdesk domain exceptions.

    Every custom exception in this module inherits from here so that a
    single ``except WorkdeskError`` clause can catch any domain error.
    Each subclass carries a stable ``code`` that clients can key on,
    independent of the (possibly localised) ``detail`` text.
    """

    code: str = "error"

    def __init__(self, detail: str = "An error occurred", code: str | None = None):
        self.detail = detail
        if code is not None:
            self.code = code
        super().__init__(detail)


class ValidationError(WorkdeskError):
    """Raised when input has the wrong shape or is out of range."""

    code = "validation_error"

    def __init__(self, detail: str = "Invalid input", code: str | None = None):
        super().__init__(detail, code)


class NotFoundError(WorkdeskError):
    """Raised when a referenced record does not exist."""

    code = "not_found"

    def __init__(self, detail: str = "Record not found", code: str | None = None):
        super().__init__(detail, code)


class RequestNotFoundError(NotFoundError):
    code = "request_not_found"

    def __init__(self, detail: str = "Request not found"):
        super().__init__(detail)


class TaskNotFoundError(NotFoundError):
    code = "task_not_found"

    def __init__(self, detail: str = "Task not found"):
        super().__init__(detail)


class UserNotFoundError(NotFoundError):
    """Raised when a worker or proposed assignee does not exist."""

    code = "assignee_not_found"

    def __init__(self, detail: str = "User not found"):
        super().__init__(detail)


class TeamNotFoundError(NotFoundError):
    code = "team_not_found"

    def __init__(self, detail: str = "Team not found"):
        super().__init__(detail)


class AuthenticationError(WorkdeskError):
    """Raised when an operation is invoked without an authenticated actor."""

    code = "not_authenticated"

    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(detail)


class AuthorizationError(WorkdeskError):
    """Raised when the actor lacks the role required for an operation."""

    code = "forbidden"

    def __init__(
        self, detail: str = "You are not allowed to perform this action", code: str | None = None
    ):
        super().__init__(detail, code)


class CapacityError(WorkdeskError):
    """Raised when a worker's WIP limit blocks an assignment.

    Also produced by the commit layer when a concurrent assigner took
    the last open slot between selection and commit.
    """

    code = "wip_limit_exceeded"

    def __init__(
        self,
        detail: str = "WIP limit exceeded",
        code: str | None = None,
        current: int | None = None,
        limit: int | None = None,
    ):
        self.current = current
        self.limit = limit
        super().__init__(detail, code)


class NoEligibleAssigneeError(CapacityError):
    """Raised by the assignee selector when nobody in the team can take the item.

    Distinct from lookup/database failures, which propagate unchanged.
    """

    code = "no_eligible_assignee"

    def __init__(self, detail: str = "No eligible assignee found", code: str | None = None):
        super().__init__(detail, code)


class ConfigurationError(WorkdeskError):
    """Raised when scoring or assignment configuration makes the operation impossible."""

    code = "configuration_error"

    def __init__(self, detail: str = "Invalid configuration", code: str | None = None):
        super().__init__(detail, code)
