"""Tests for domain error handler to verify structured JSON error responses."""
import json

import pytest

from cyclecoach.core.error_handlers import ERROR_STATUS_MAP, domain_error_handler
from cyclecoach.core.exceptions import (
    AuthorizationError,
    ConflictError,
    DomainError,
    InvalidTransitionError,
    NotFoundError,
    UpstreamFailureError,
    ValidationError,
    VerificationTimeoutError,
)


class MockRequest:
    """Mock FastAPI Request object for testing."""
    
    def __init__(self, request_id: str = "test-request-123"):
        self.state = type('State', (), {'request_id': request_id})()


class TestDomainErrorExceptions:
    """Test domain exception classes and their error codes."""
    
    def test_not_found_error_default_message(self):
        error = NotFoundError("GenerationJob")
        
        assert error.code == "NF_GENERATIONJOB_001"
        assert error.message == "GenerationJob not found"
        assert error.details == {}
    
    def test_validation_error(self):
        error = ValidationError("target_cycle_day", "must be in the future")
        
        assert error.code == "VAL_TARGET_CYCLE_DAY_001"
        assert error.message == "Validation failed for target_cycle_day: must be in the future"
        assert error.details == {"field": "target_cycle_day"}
    
    def test_conflict_error_custom_code(self):
        error = ConflictError("busy", code="GEN_ACTIVE_JOB")
        
        assert error.code == "GEN_ACTIVE_JOB"
    
    def test_invalid_transition_details(self):
        error = InvalidTransitionError("req-1", "completed", "failed")
        
        assert error.code == "JOB_INVALID_TRANSITION"
        assert error.details == {
            "request_id": "req-1",
            "current_status": "completed",
            "target_status": "failed",
        }
    
    def test_verification_timeout(self):
        error = VerificationTimeoutError(artifact_id=12, attempts=10)
        
        assert error.code == "VERIFY_TIMEOUT"
        assert error.details == {"artifact_id": 12, "attempts": 10}
    
    def test_all_domain_errors_inherit_from_base(self):
        for error_cls in ERROR_STATUS_MAP:
            assert issubclass(error_cls, DomainError)


class TestDomainErrorHandler:
    """Test the error handler renders the data/meta/errors envelope."""
    
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,expected_status",
        [
            (NotFoundError("SplitPlan"), 404),
            (ValidationError("kind", "unknown"), 400),
            (ConflictError("busy"), 409),
            (InvalidTransitionError("r", "failed", "completed"), 409),
            (AuthorizationError("not yours"), 403),
            (UpstreamFailureError("AI down"), 502),
        ],
    )
    async def test_status_codes(self, error, expected_status):
        response = await domain_error_handler(MockRequest(), error)
        
        assert response.status_code == expected_status
    
    @pytest.mark.asyncio
    async def test_upstream_message_surfaced_verbatim(self):
        response = await domain_error_handler(MockRequest(), UpstreamFailureError("The AI service is unavailable"))
        data = json.loads(response.body.decode())
        
        assert data["data"] is None
        assert data["errors"][0]["code"] == "UPSTREAM_GENERATION_FAILED"
        assert data["errors"][0]["message"] == "The AI service is unavailable"
    
    @pytest.mark.asyncio
    async def test_response_includes_metadata(self):
        response = await domain_error_handler(MockRequest("abc-123"), ConflictError("busy"))
        data = json.loads(response.body.decode())
        
        assert data["meta"]["request_id"] == "abc-123"
        assert data["meta"]["timestamp"].endswith("Z")
    
    @pytest.mark.asyncio
    async def test_unmapped_error_is_500(self):
        response = await domain_error_handler(MockRequest(), VerificationTimeoutError(1, 10))
        
        assert response.status_code == 500
