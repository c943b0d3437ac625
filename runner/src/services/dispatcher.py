"""
Command dispatcher - sends requests over the device channel and waits for
the matching response.
"""

import asyncio
import logging
import uuid
from typing import Any, Callable, Dict, Optional

from runner.src.channel.base import CommandChannel
from runner.src.config import get_settings
from runner.src.errors import ChannelNotConnected, CommandTimeout, PipelineStopped
from runner.src.models.messages import (
    RUN_HOST_COMMAND,
    HOST_COMMAND_RESULT,
    HOST_COMMAND_DEBUG,
    WAIT_FOR_IMAGE_MATCH,
    WAIT_FOR_IMAGE_RESULT,
    START_BACKGROUND_LOG,
    START_BACKGROUND_LOG_RESULT,
    STOP_BACKGROUND_LOG,
    STOP_BACKGROUND_LOG_RESULT,
    CommandRequest,
    CommandResult,
    CommandDebug,
    ImageMatchRequest,
    ImageMatchResult,
    LogStartRequest,
    LogStartResult,
    LogStopRequest,
    LogStopResult,
)
from runner.src.services.cancellation import CancelToken

logger = logging.getLogger(__name__)
settings = get_settings()

Matcher = Callable[[Dict[str, Any]], bool]

def new_request_id() -> str:
    return uuid.uuid4().hex[:12]

class CommandDispatcher:
    """
    Request/response correlation over a CommandChannel.

    Each call registers its response listeners, emits the request and waits
    for the first matching response, the timeout, or cancellation, whichever
    comes first. Listeners are removed on every exit path. Nothing is
    retried here.
    """

    def __init__(
        self,
        channel: CommandChannel,
        command_timeout: Optional[float] = None,
        log_start_timeout: Optional[float] = None,
        log_stop_timeout: Optional[float] = None,
        match_grace_seconds: Optional[float] = None,
    ):
        self.channel = channel
        self.command_timeout = command_timeout if command_timeout is not None else settings.command_timeout
        self.log_start_timeout = log_start_timeout if log_start_timeout is not None else settings.log_start_timeout
        self.log_stop_timeout = log_stop_timeout if log_stop_timeout is not None else settings.log_stop_timeout
        self.match_grace_seconds = (
            match_grace_seconds if match_grace_seconds is not None else settings.match_grace_seconds
        )

    async def dispatch(self, command: str, cancel_token: Optional[CancelToken] = None) -> str:
        """Run one command on the device and return its output."""
        request_id = new_request_id()

        def on_debug(data: Dict[str, Any]):
            if data.get("requestId") == request_id:
                logger.debug(f"[Device Debug] {CommandDebug.model_validate(data).message}")

        self.channel.on(HOST_COMMAND_DEBUG, on_debug)
        try:
            data = await self._request(
                request_event=RUN_HOST_COMMAND,
                payload=CommandRequest(command=command, request_id=request_id).model_dump(by_alias=True),
                response_event=HOST_COMMAND_RESULT,
                matches=lambda d: d.get("requestId") == request_id,
                timeout=self.command_timeout,
                cancel_token=cancel_token,
                label=command,
            )
        finally:
            self.channel.off(HOST_COMMAND_DEBUG, on_debug)

        return CommandResult.model_validate(data).output

    async def wait_for_image(
        self,
        template_path: str,
        timeout_ms: int,
        cancel_token: Optional[CancelToken] = None,
    ) -> ImageMatchResult:
        """
        Ask the device side to wait for a template image to appear.
        The device answers on its own after timeout_ms; we allow a grace
        period on top of that before giving up.
        """
        request_id = new_request_id()
        request = ImageMatchRequest(
            template_path=template_path,
            timeout_ms=timeout_ms,
            request_id=request_id,
        )

        data = await self._request(
            request_event=WAIT_FOR_IMAGE_MATCH,
            payload=request.model_dump(by_alias=True, exclude_none=True),
            response_event=WAIT_FOR_IMAGE_RESULT,
            # Older agents do not echo the request id
            matches=lambda d: d.get("requestId") in (None, request_id),
            timeout=timeout_ms / 1000 + self.match_grace_seconds,
            cancel_token=cancel_token,
            label=f"wait_for_image {template_path}",
        )
        return ImageMatchResult.model_validate(data)

    async def start_background_log(
        self,
        command: Optional[str],
        filename: str,
        cancel_token: Optional[CancelToken] = None,
    ) -> LogStartResult:
        data = await self._request(
            request_event=START_BACKGROUND_LOG,
            payload=LogStartRequest(command=command, filename=filename).model_dump(by_alias=True),
            response_event=START_BACKGROUND_LOG_RESULT,
            matches=lambda d: True,
            timeout=self.log_start_timeout,
            cancel_token=cancel_token,
            label=f"start_background_log {filename}",
        )
        return LogStartResult.model_validate(data)

    async def stop_background_log(self, log_id: str, stop_command: Optional[str] = None) -> LogStopResult:
        data = await self._request(
            request_event=STOP_BACKGROUND_LOG,
            payload=LogStopRequest(log_id=log_id, stop_command=stop_command).model_dump(by_alias=True),
            response_event=STOP_BACKGROUND_LOG_RESULT,
            matches=lambda d: d.get("logId") == log_id,
            timeout=self.log_stop_timeout,
            cancel_token=None,
            label=f"stop_background_log {log_id}",
        )
        return LogStopResult.model_validate(data)

    async def _request(
        self,
        request_event: str,
        payload: Dict[str, Any],
        response_event: str,
        matches: Matcher,
        timeout: float,
        cancel_token: Optional[CancelToken],
        label: str,
    ) -> Dict[str, Any]:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        if not self.channel.connected:
            raise ChannelNotConnected()

        future = asyncio.get_running_loop().create_future()

        def on_response(data: Dict[str, Any]):
            if not future.done() and matches(data):
                future.set_result(data)

        self.channel.on(response_event, on_response)
        cancel_waiter = None
        try:
            await self.channel.emit(request_event, payload)

            waiters = {future}
            if cancel_token is not None:
                cancel_waiter = asyncio.ensure_future(cancel_token.wait())
                waiters.add(cancel_waiter)

            done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)

            if future in done:
                return future.result()
            if cancel_waiter is not None and cancel_waiter in done:
                raise PipelineStopped()

            logger.warning(f"No response to {request_event} within {timeout:g}s: {label}")
            raise CommandTimeout(label, timeout)
        finally:
            self.channel.off(response_event, on_response)
            if cancel_waiter is not None and not cancel_waiter.done():
                cancel_waiter.cancel()
            if not future.done():
                future.cancel()
