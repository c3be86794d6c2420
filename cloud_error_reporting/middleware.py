# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Cloud Error Reporting contributors

"""Starlette/FastAPI middleware that reports unhandled route exceptions.

Usage:
    from cloud_error_reporting import ErrorReporting, ErrorReportingMiddleware
    from fastapi import FastAPI

    errors = ErrorReporting({"report_mode": "always"})
    app = FastAPI()
    app.add_middleware(ErrorReportingMiddleware, reporter=errors)
"""

from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from .request_information import starlette_request_information_extractor

INTERNAL_SERVER_ERROR = 500


class ErrorReportingMiddleware(BaseHTTPMiddleware):
    """Reports exceptions escaping a route, then re-raises them.

    The response is left to the application's own exception handling; the
    error event always records status 500.

    Attributes:
        reporter: ErrorReporting instance used for submission
    """

    def __init__(self, app: Any, reporter: Any):
        """Initialize error reporting middleware.

        Args:
            app: ASGI application
            reporter: ErrorReporting instance
        """
        super().__init__(app)
        self.reporter = reporter

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            request_information = starlette_request_information_extractor(request, INTERNAL_SERVER_ERROR)
            self.reporter.report(e, request=request_information)
            raise
