class AppError(Exception):
    def __init__(self, message: str, code: str = "INTERNAL_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(AppError):
    def __init__(self, resource: str, resource_id: str):
        super().__init__(f"{resource} '{resource_id}' not found", code="NOT_FOUND")


class ValidationError(AppError):
    def __init__(self, message: str):
        super().__init__(message, code="VALIDATION_ERROR")


class SerializationError(AppError):
    def __init__(self, message: str):
        super().__init__(message, code="SERIALIZATION_ERROR")


class StorageUnavailableError(AppError):
    def __init__(self, message: str):
        super().__init__(message, code="STORAGE_UNAVAILABLE")


class OperationTimeoutError(AppError):
    def __init__(self, operation: str, timeout: float):
        super().__init__(f"{operation} did not complete within {timeout}s", code="TIMEOUT")


class OutOfOrderEventError(AppError):
    def __init__(self, aggregate_id: str, event_type: str):
        super().__init__(
            f"Received {event_type} before the creation event for '{aggregate_id}'",
            code="OUT_OF_ORDER_EVENT",
        )


class ProjectionDivergenceError(AppError):
    def __init__(self, movement_id: str, event_type: str):
        super().__init__(
            f"{event_type} targets movement '{movement_id}' which has no projection row",
            code="PROJECTION_DIVERGENCE",
        )


class UnknownEventKindError(AppError):
    def __init__(self, event_type: str):
        super().__init__(f"Unknown event type '{event_type}'", code="UNKNOWN_EVENT_KIND")
