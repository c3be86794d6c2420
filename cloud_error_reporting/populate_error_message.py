# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Cloud Error Reporting contributors

"""Populate an ErrorMessage from an arbitrary reported value."""

import os
import traceback
from collections.abc import Mapping
from typing import Any

from .error_message import ErrorMessage

_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))


def build_stack_trace(message: str | None = None) -> str:
    """Build a Python-format traceback of the current call site.

    Frames from this package are removed so the reported location is the
    caller's. The message, if any, becomes the final line.
    """
    frames = [
        frame
        for frame in traceback.extract_stack()
        if not os.path.abspath(frame.filename).startswith(_PACKAGE_DIR)
    ]
    lines = ["Traceback (most recent call last):\n"]
    lines.extend(traceback.format_list(frames))
    lines.append(message if message else "Error")
    return "".join(lines)


def format_exception(error: BaseException) -> str:
    return "".join(traceback.format_exception(type(error), error, error.__traceback__)).rstrip("\n")


def _apply_service_context(value: Any, error_message: ErrorMessage) -> None:
    if isinstance(value, Mapping):
        error_message.set_service_context(value.get("service"), value.get("version"))


def populate_error_message(value: Any, error_message: ErrorMessage) -> ErrorMessage:
    """Fill ``error_message`` from an exception, a mapping, or any other value.

    Exceptions contribute their formatted traceback plus optional ``user`` and
    ``service_context`` attributes. Mappings contribute ``message``, ``user``,
    ``file_path``, ``line_number``, ``function_name`` and ``service_context``.
    Anything else is converted with ``str()`` and given the current stack.
    """
    if isinstance(value, BaseException):
        error_message.set_message(format_exception(value))
        if hasattr(value, "user"):
            error_message.set_user(value.user)
        _apply_service_context(getattr(value, "service_context", None), error_message)
    elif isinstance(value, Mapping):
        if "message" in value:
            error_message.set_message(value["message"])
        else:
            error_message.set_message(build_stack_trace(str(dict(value))))
        if "user" in value:
            error_message.set_user(value["user"])
        if "file_path" in value:
            error_message.set_file_path(value["file_path"])
        if "line_number" in value:
            error_message.set_line_number(value["line_number"])
        if "function_name" in value:
            error_message.set_function_name(value["function_name"])
        _apply_service_context(value.get("service_context"), error_message)
    else:
        error_message.set_message(build_stack_trace(str(value)))

    return error_message
