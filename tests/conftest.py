# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Cloud Error Reporting contributors

"""Shared fixtures for cloud_error_reporting tests."""

import json

import httpx
import pytest

from cloud_error_reporting.providers import StaticConfigProvider
from cloud_error_reporting.silent_logger import SilentLogger


class RecordingTransport(httpx.MockTransport):
    """MockTransport that replays canned responses and records every request."""

    def __init__(self, responses):
        self.requests: list[httpx.Request] = []
        self._responses = list(responses)
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        # The last canned response repeats once the list is exhausted
        response = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(response, Exception):
            raise response
        # A fresh Response per request; httpx binds each response to its request
        return httpx.Response(response.status_code, headers=response.headers, content=response.content)

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def json_bodies(self) -> list[dict]:
        return [json.loads(request.content) for request in self.requests]


@pytest.fixture
def env():
    """Empty environment provider."""
    return StaticConfigProvider({})


@pytest.fixture
def logger():
    """In-memory logger."""
    return SilentLogger(level="DEBUG")


@pytest.fixture
def make_transport():
    """Factory for RecordingTransport instances."""
    return RecordingTransport
