"""Custom exception hierarchy for the agent memory service."""


class AgentMemoryError(Exception):
    """Base exception for all agent memory service errors."""

    pass


# --- Storage errors ---


class StorageError(AgentMemoryError):
    """Base for storage-related errors."""

    pass


class StorageConnectionError(StorageError):
    """Failed to connect to a storage backend."""

    pass


# --- Lookup errors ---


class TenantNotFoundError(AgentMemoryError):
    """Requested service (tenant) configuration does not exist."""

    def __init__(self, service_id=None, message: str = "Service not found"):
        self.service_id = service_id
        super().__init__(f"{message}: {service_id}" if service_id else message)


class ServiceAlreadyExistsError(AgentMemoryError):
    """Attempted to create a service whose id is already taken."""

    def __init__(self, service_id: str):
        self.service_id = service_id
        super().__init__(f"Service already exists: {service_id}")


class SessionNotFoundError(AgentMemoryError):
    """Requested session has no metadata (never existed or expired)."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class CategoryNotFoundError(AgentMemoryError):
    """Requested memory bucket is not defined for the service."""

    def __init__(self, category: str):
        self.category = category
        super().__init__(f"Bucket not found: {category}")


# --- Validation errors ---


class ValidationError(AgentMemoryError):
    """Input validation failed."""

    pass


class SchemaValidationError(ValidationError):
    """Data did not match a declarative field schema."""

    def __init__(self, errors, message: str = "Validation failed"):
        self.errors = list(errors)
        super().__init__(message)


class ConfigurationError(AgentMemoryError):
    """Configuration is invalid or missing required values."""

    pass


# --- Processing errors ---


class ExtractionError(AgentMemoryError):
    """Memory extraction failed (model call or response parsing)."""

    pass


class ConsolidationError(AgentMemoryError):
    """Error during memory consolidation."""

    pass
