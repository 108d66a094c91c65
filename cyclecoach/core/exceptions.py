class DomainError(Exception):
    def __init__(self, code: str, message: str, details: dict | None = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NotFoundError(DomainError):
    def __init__(self, entity: str, message: str | None = None, details: dict | None = None):
        code = f"NF_{entity.upper()}_001"
        msg = message or f"{entity} not found"
        super().__init__(code, msg, details)


class ValidationError(DomainError):
    def __init__(self, field: str, message: str, details: dict | None = None):
        code = f"VAL_{field.upper()}_001"
        msg = f"Validation failed for {field}: {message}"
        super().__init__(code, msg, details or {"field": field})


class ConflictError(DomainError):
    def __init__(self, message: str, code: str = "CF_001", details: dict | None = None):
        super().__init__(code, message, details)


class AuthorizationError(DomainError):
    def __init__(self, message: str, code: str = "AUTH_006", details: dict | None = None):
        super().__init__(code, message, details)


class InvalidTransitionError(DomainError):
    """A worker asked for a job state change the current status does not allow."""

    def __init__(self, request_id: str, current_status: str, target_status: str):
        super().__init__(
            "JOB_INVALID_TRANSITION",
            f"Cannot move job {request_id} from {current_status} to {target_status}",
            {
                "request_id": request_id,
                "current_status": current_status,
                "target_status": target_status,
            },
        )


class UpstreamFailureError(DomainError):
    """The AI generation collaborator failed. The message is shown to the user."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("UPSTREAM_GENERATION_FAILED", message, details)


class VerificationTimeoutError(DomainError):
    def __init__(self, artifact_id: int, attempts: int, details: dict | None = None):
        super().__init__(
            "VERIFY_TIMEOUT",
            f"Artifact {artifact_id} not visible after {attempts} attempts",
            details or {"artifact_id": artifact_id, "attempts": attempts},
        )
