class AppError(Exception):
    """Base class for all application exceptions."""
    code = "app_error"

    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(AppError):
    """Raised when a referenced entity does not exist."""
    code = "not_found"

    def __init__(self, entity: str, identifier: str, message: str | None = None):
        self.entity = entity
        self.identifier = identifier
        super().__init__(
            message or f"{entity} with id {identifier} not found",
            status_code=404,
            details={"entity": entity, "id": identifier},
        )


class InvalidArgsError(AppError):
    """Raised for a malformed time slot, an out-of-range capacity or bad paging arguments."""
    code = "invalid_args"

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)


class ConflictError(AppError):
    """Base for every rule violation reported as HTTP 409."""
    code = "conflict"

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=409, details=details)


class AssignmentConflictError(ConflictError):
    """Raised when a lecturer is not (or is already) assigned to a course."""
    code = "assignment_conflict"


class ScheduleConflictError(ConflictError):
    """Raised when a time slot overlaps a lecturer's or an enrolled student's schedule."""
    code = "schedule_conflict"


class CapacityConflictError(ConflictError):
    """Raised when a session is full or its capacity would drop below the enrolled count."""
    code = "capacity_conflict"


class EnrollmentConflictError(ConflictError):
    """Raised for a duplicate enrollment or one overlapping the student's timetable."""
    code = "enrollment_conflict"


class DeleteConflictError(ConflictError):
    """Raised when an entity still has dependents."""
    code = "delete_conflict"

    def __init__(self, entity: str, identifier: str, message: str):
        super().__init__(message, details={"entity": entity, "id": identifier})


class ConcurrentModificationError(ConflictError):
    """Raised when a concurrent writer keeps winning the race for the same entity."""
    code = "concurrent_modification"
