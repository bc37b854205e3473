"""
Unit tests for main FastAPI application.

Tests the root endpoints, health checks and global exception handlers.
"""

import json

import pytest
from unittest.mock import Mock, patch
from fastapi.testclient import TestClient
from fastapi import Request

from core.exceptions import (
    CapacityConflictError, InvalidRequestError, InvalidTransitionError, NotFoundError,
    PermissionDeniedError, ProofRequiredError, SchedulingError,
)
from main import (
    app,
    root,
    health_check,
    scheduling_error_handler,
    global_exception_handler,
    value_error_handler,
)


class TestRootEndpoints:
    """Test root API endpoints."""

    def test_root_endpoint(self):
        client = TestClient(app)
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Maintenance Scheduling Backend API"
        assert data["version"] == "1.0.0"
        assert data["status"] == "running"

    def test_health_endpoint(self):
        client = TestClient(app)
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_health_check_function_directly(self):
        result = await health_check()
        assert result == {"status": "healthy"}

    @pytest.mark.asyncio
    async def test_root_function_directly(self):
        result = await root()
        assert result["status"] == "running"


class TestExceptionHandlers:
    """Test global exception handlers."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("exc,expected_status", [
        (NotFoundError("Booking", 1), 404),
        (CapacityConflictError("Provider 1 is already booked"), 409),
        (InvalidTransitionError(1, "finished", "start"), 400),
        (ProofRequiredError(1), 422),
        (InvalidRequestError("Reason too short"), 422),
        (PermissionDeniedError("Admins only"), 403),
        (SchedulingError("Something else"), 400),
    ])
    async def test_scheduling_error_handler(self, exc, expected_status):
        response = await scheduling_error_handler(Mock(spec=Request), exc)

        assert response.status_code == expected_status
        data = json.loads(response.body)
        assert data["type"] == exc.code
        assert data["detail"] == exc.message
        assert data["details"] == exc.details

    @pytest.mark.asyncio
    async def test_global_exception_handler(self):
        """Test handling of unhandled exceptions."""
        with patch('main.logger') as mock_logger:
            response = await global_exception_handler(Mock(spec=Request), RuntimeError("Test error"))

            assert response.status_code == 500
            assert b"internal_error" in response.body

            mock_logger.exception.assert_called_once()
            assert "Unhandled exception: Test error" in mock_logger.exception.call_args[0][0]

    @pytest.mark.asyncio
    async def test_value_error_handler(self):
        with patch('main.logger') as mock_logger:
            response = await value_error_handler(Mock(spec=Request), ValueError("Invalid value"))

            assert response.status_code == 400
            assert b"Invalid value" in response.body
            assert b"validation_error" in response.body
            mock_logger.warning.assert_called_once_with("ValueError: Invalid value")
