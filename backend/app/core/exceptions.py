class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)

class ExtractionError(AppError):
    """Raised when a document cannot be read or has no recognizable header. Aborts the whole import."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class RowError(AppError):
    """Raised for a single source row that lacks mandatory data (semester, dates)."""
    def __init__(self, message: str, row: int | None = None):
        super().__init__(message, status_code=422, details={"row": row} if row is not None else None)
        self.row = row

class DuplicateError(AppError):
    """Raised when a record with the same class name, semester and academic year already exists."""
    def __init__(self, class_name: str, semester: str):
        super().__init__(
            f'Schedule for class "{class_name}" already exists in semester {semester} of this academic year',
            status_code=409,
            details={"class_name": class_name, "semester": semester},
        )

class ConflictError(AppError):
    """Raised when a room is already booked for an overlapping slot and date range."""
    def __init__(self, room_name: str, building_name: str | None, day_of_week: int, time_slot: str, details: dict = None):
        location = f"{room_name} ({building_name})" if building_name else room_name
        super().__init__(
            f"Room {location} is already booked on day {day_of_week}, periods {time_slot}",
            status_code=409,
            details=details,
        )
        self.room_name = room_name
        self.building_name = building_name

class ReconciliationError(AppError):
    """Raised when an explicitly referenced course or academic year id does not exist."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with id {resource_id} not found",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )
