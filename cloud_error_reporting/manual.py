# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Cloud Error Reporting contributors

"""Manual error reporting interface."""

from collections.abc import Callable
from typing import Any

from .configuration import Configuration
from .error_message import ErrorMessage
from .logger import Logger
from .populate_error_message import populate_error_message
from .request_handler import Callback
from .request_information import RequestInformationContainer, manual_request_information_extractor

MISSING_STACK_TRACE_WARNING = (
    "Encountered a manually constructed error with message \"{message}\" but "
    "without a construction site stack trace. This error might not be visible "
    "in the error reporting console."
)

Dispatch = Callable[[ErrorMessage, Callback | None], Any]
ReportManualError = Callable[..., ErrorMessage]


def build_error_message(
    err: Any,
    config: Configuration,
    logger: Logger,
    request: Any = None,
    additional_message: str | None = None,
) -> ErrorMessage:
    """Turn a reported value into a populated ErrorMessage.

    Args:
        err: Exception, mapping, string or prepared ErrorMessage
        config: Resolved configuration (supplies the service context)
        logger: Logger for diagnostics
        request: RequestInformationContainer or mapping of request details
        additional_message: Replaces the message text when given
    """
    if isinstance(err, ErrorMessage):
        em = err
        if em.auto_generated_stack_trace is not None:
            # Appended once; a second report of the same message sends it as-is
            em.set_message(f"{em.message}\n{em.auto_generated_stack_trace}")
            em.auto_generated_stack_trace = None
        else:
            logger.warning(MISSING_STACK_TRACE_WARNING.format(message=em.message))
    else:
        service_context = config.get_service_context()
        em = ErrorMessage().set_service_context(service_context.service, service_context.version)
        populate_error_message(err, em)

    if isinstance(request, RequestInformationContainer):
        em.consume_request_information(request)
    elif request is not None:
        em.consume_request_information(manual_request_information_extractor(request))

    if isinstance(additional_message, str):
        em.set_message(additional_message)

    return em


def handler_setup(dispatch: Dispatch, config: Configuration, logger: Logger) -> ReportManualError:
    """Create the ``report`` function bound to a configuration.

    Args:
        dispatch: Schedules delivery of a populated ErrorMessage
        config: Resolved configuration
        logger: Logger for diagnostics

    Returns:
        report_manual_error(err, request=None, additional_message=None, callback=None)
    """

    def report_manual_error(
        err: Any,
        request: Any = None,
        additional_message: str | None = None,
        callback: Callback | None = None,
    ) -> ErrorMessage:
        """Report a value without waiting for delivery.

        Returns:
            The ErrorMessage that was submitted
        """
        em = build_error_message(err, config, logger, request, additional_message)
        dispatch(em, callback)
        return em

    return report_manual_error
