# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
IR-USB bridge TCP/IP command channel.

Owns the persistent command connection to a single bridge. Commands are
written as "Q<command>\\r" frames; the bridge echoes the frame at the start
of its reply and ends it with an "OK" acknowledgement. There are no request
ids, so replies are correlated with requests by scanning the pending requests
in the order they were sent and taking the first one whose frame begins the
received data. This depends on the bridge answering commands in order, which
it does since it handles one command at a time and this channel is the only
writer on the stream.

TCP does not preserve reply boundaries: received data is buffered, and a reply
is dispatched once its acknowledgement, or the echoed frame of the next
pending request, has arrived.
"""

from __future__ import annotations

import asyncio
from asyncio import Future
from enum import Enum

from ..internal_types import *
from ..exceptions import (
    IrUsbError,
    DeviceConnectionError,
    NotConnectedError,
    CommandTimeoutError,
    UnexpectedPacketError,
  )
from ..constants import READ_CHUNK_SIZE, FRAME_TERMINATOR, ACK_SEGMENT
from ..pkg_logging import logger
from ..protocol import encode_command, clean_reply

from .client_config import IrUsbClientConfig

class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"

class PendingRequest:
    """A command that has been sent and is waiting for its reply."""

    expected_prefix: str
    """The exact frame that was sent. The reply starts with it."""

    future: Future[str]
    """Resolved with the cleaned reply payload, or rejected if the connection closes."""

    def __init__(self, expected_prefix: str, future: Future[str]):
        self.expected_prefix = expected_prefix
        self.future = future

    @property
    def done(self) -> bool:
        return self.future.done()

    def matches(self, chunk: str) -> bool:
        return chunk.startswith(self.expected_prefix)

    def resolve(self, chunk: str) -> None:
        if not self.future.done():
            self.future.set_result(clean_reply(chunk, self.expected_prefix))

    def reject(self, exc: BaseException) -> None:
        if not self.future.done():
            self.future.set_exception(exc)

    def cancel(self) -> None:
        self.future.cancel()

    def __str__(self) -> str:
        return f"PendingRequest({self.expected_prefix!r})"

    def __repr__(self) -> str:
        return str(self)

class PendingRequestQueue:
    """Ordered queue of pending requests. Oldest requests have match priority.

    Only the owning CommandChannel adds, matches, or removes entries.
    """

    _requests: List[PendingRequest]

    def __init__(self) -> None:
        self._requests = []

    def push(self, request: PendingRequest) -> None:
        self._requests.append(request)

    def find(self, data: str) -> Optional[PendingRequest]:
        """Returns the oldest live request whose frame begins data, or None.

        Requests whose callers have already given up are skipped.
        """
        for request in self._requests:
            if not request.done and request.matches(data):
                return request
        return None

    def live_prefixes(self) -> Set[str]:
        """The frames of all requests whose callers are still waiting."""
        return set(request.expected_prefix for request in self._requests if not request.done)

    def discard(self, request: PendingRequest) -> None:
        try:
            self._requests.remove(request)
        except ValueError:
            pass

    def reject_all(self, exc_factory: Callable[[], BaseException]) -> int:
        """Removes every request, rejecting each with a fresh exception. Returns the number rejected."""
        requests = self._requests
        self._requests = []
        for request in requests:
            request.reject(exc_factory())
        return len(requests)

    def __len__(self) -> int:
        return len(self._requests)

    def __iter__(self) -> Iterator[PendingRequest]:
        return iter(list(self._requests))

OpenCallback = Callable[[], None]
CloseCallback = Callable[[Optional[BaseException]], None]
UnexpectedPacketCallback = Callable[[UnexpectedPacketError], None]

class CommandChannel:
    """Persistent TCP/IP command connection to one IR-USB bridge."""

    host: str
    port: int
    config: IrUsbClientConfig
    state: ConnectionState = ConnectionState.DISCONNECTED
    pending: PendingRequestQueue
    reader: Optional[asyncio.StreamReader] = None
    writer: Optional[asyncio.StreamWriter] = None

    on_open: Optional[OpenCallback]
    """Called after the connection is established."""

    on_close: Optional[CloseCallback]
    """Called once when an established connection closes, with the error that closed it, if any."""

    on_unexpected_packet: Optional[UnexpectedPacketCallback]
    """Called with received data that matches no pending request."""

    _rx_buffer: str = ''
    """Received data not yet dispatched; a partial reply or a partial echoed frame."""

    _reader_task: Optional[asyncio.Task[None]] = None
    _generation: int = 0
    """Incremented by close(); lets an open() in progress notice it was abandoned."""

    def __init__(
            self,
            host: str,
            port: int,
            *,
            config: Optional[IrUsbClientConfig]=None,
            on_open: Optional[OpenCallback]=None,
            on_close: Optional[CloseCallback]=None,
            on_unexpected_packet: Optional[UnexpectedPacketCallback]=None,
          ) -> None:
        self.host = host
        self.port = port
        self.config = IrUsbClientConfig(base_config=config)
        self.pending = PendingRequestQueue()
        self.on_open = on_open
        self.on_close = on_close
        self.on_unexpected_packet = on_unexpected_packet

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    async def open(self, host: Optional[str]=None, port: Optional[int]=None) -> None:
        """Connects to the bridge, with timeout.

        On failure the channel is left DISCONNECTED and DeviceConnectionError is
        raised. There is no automatic retry.
        """
        if self.state != ConnectionState.DISCONNECTED:
            raise IrUsbError(f"{self}: Cannot open channel while {self.state.value}")
        if host is not None:
            self.host = host
        if port is not None:
            self.port = port
        generation = self._generation
        self.state = ConnectionState.CONNECTING
        logger.debug(f"{self}: Connecting")
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                self.config.connect_timeout_secs
              )
        except OSError as e:
            self.state = ConnectionState.DISCONNECTED
            raise DeviceConnectionError(f"{self}: Unable to connect: {e}") from e
        except BaseException:
            self.state = ConnectionState.DISCONNECTED
            raise
        if generation != self._generation:
            # close() was called while we were connecting
            writer.close()
            self.state = ConnectionState.DISCONNECTED
            raise DeviceConnectionError(f"{self}: Channel closed while connecting")
        self._rx_buffer = ''
        self.reader = reader
        self.writer = writer
        self.state = ConnectionState.CONNECTED
        self._reader_task = asyncio.create_task(self._read_loop(reader))
        logger.info(f"{self}: Connected")
        if self.on_open is not None:
            self.on_open()

    async def send_command(self, command: str) -> str:
        """Sends a command and waits for the reply.

        Returns the reply payload with the echoed frame, empty segments, and
        "OK" acknowledgements removed; remaining segments are joined with "\\r".

        Raises NotConnectedError immediately if the channel is not connected, or
        later if the connection closes before the reply arrives. Raises
        CommandTimeoutError if no reply arrives within the command timeout.
        """
        frame = encode_command(command)
        writer = self.writer
        if self.state != ConnectionState.CONNECTED or writer is None:
            raise NotConnectedError(f"{self}: Not connected; cannot send {command!r}")
        future: Future[str] = asyncio.get_running_loop().create_future()
        request = PendingRequest(frame, future)
        # Queue and write with no suspension point in between, so that the
        # order of the pending queue is the order on the wire.
        self.pending.push(request)
        future.add_done_callback(lambda _: self.pending.discard(request))
        logger.debug(f"{self}: Sending {frame!r}")
        try:
            writer.write(frame.encode('ascii'))
            await asyncio.wait_for(writer.drain(), self.config.command_timeout_secs)
        except OSError as e:
            request.cancel()
            self._shutdown(e)
            raise DeviceConnectionError(f"{self}: Write failed: {e}") from e
        try:
            return await asyncio.wait_for(future, self.config.command_timeout_secs)
        except asyncio.TimeoutError as e:
            raise CommandTimeoutError(
                f"{self}: No reply to {command!r} within {self.config.command_timeout_secs} seconds") from e

    def on_data(self, chunk: str) -> bool:
        """Adds data received from the bridge to the receive buffer and dispatches complete replies.

        A read may hold part of a reply or several replies. Each complete reply
        goes to the oldest pending request whose frame begins it; an incomplete
        one stays buffered until more data arrives.

        Returns False if any of the data matched no pending request. That is
        reported, not fatal; the pending queue is left as it was.
        """
        self._rx_buffer += chunk
        all_expected = True
        while len(self._rx_buffer) > 0:
            buffer = self._rx_buffer
            request = self.pending.find(buffer)
            if request is None:
                end = self._unexpected_length(buffer)
                if end == 0:
                    break
                self._rx_buffer = buffer[end:]
                self._report_unexpected(buffer[:end])
                all_expected = False
                continue
            end = self._reply_length(buffer, request.expected_prefix)
            if end is None:
                break
            self._rx_buffer = buffer[end:]
            self.pending.discard(request)
            logger.debug(f"{self}: Received reply {buffer[:end]!r}")
            request.resolve(buffer[:end])
        return all_expected

    def _reply_length(self, buffer: str, prefix: str) -> Optional[int]:
        """Returns the length of the complete reply at the start of buffer, or None if it is incomplete.

        A reply ends after its "OK" acknowledgement, or where the echoed frame
        of another pending request begins.
        """
        start = len(prefix) - len(FRAME_TERMINATOR)
        ends: List[int] = []
        ack_end = FRAME_TERMINATOR + ACK_SEGMENT + FRAME_TERMINATOR
        i = buffer.find(ack_end, start)
        if i >= 0:
            ends.append(i + len(ack_end))
        for other in self.pending.live_prefixes():
            i = buffer.find(FRAME_TERMINATOR + other, start)
            if i >= 0:
                ends.append(i + len(FRAME_TERMINATOR))
        if len(ends) == 0:
            return None
        return min(ends)

    def _unexpected_length(self, buffer: str) -> int:
        """Returns the length of the data at the start of buffer that cannot begin a reply.

        Returns 0 if buffer may still turn out to be the start of a reply.
        """
        prefixes = self.pending.live_prefixes()
        if any(prefix.startswith(buffer) for prefix in prefixes):
            # a partial echoed frame
            return 0
        starts = [i for i in (buffer.find(prefix, 1) for prefix in prefixes) if i > 0]
        if len(starts) > 0:
            return min(starts)
        # whole segments only; an unterminated tail may still grow into a frame
        i = buffer.rfind(FRAME_TERMINATOR)
        return i + len(FRAME_TERMINATOR) if i >= 0 else 0

    def _report_unexpected(self, data: str) -> None:
        error = UnexpectedPacketError(f"{self}: Unexpected packet: {data!r}")
        logger.warning(str(error))
        if self.on_unexpected_packet is not None:
            self.on_unexpected_packet(error)

    async def _read_loop(self, reader: asyncio.StreamReader) -> None:
        exc: Optional[BaseException] = None
        try:
            while True:
                data = await reader.read(READ_CHUNK_SIZE)
                if len(data) == 0:
                    logger.info(f"{self}: Connection closed by bridge")
                    break
                self.on_data(data.decode('ascii', errors='replace'))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"{self}: Error reading from bridge: {e}")
            exc = e
        finally:
            # A reader that was replaced or cancelled by _shutdown() must not
            # touch a newer connection.
            if self._reader_task is asyncio.current_task():
                self._shutdown(exc)

    def _shutdown(self, exc: Optional[BaseException]=None) -> None:
        """Marks the channel DISCONNECTED and releases the stream. Safe to call from a callback.

        Rejects all pending requests with NotConnectedError and fires on_close
        if the channel was connected. Has no effect if already disconnected.
        """
        if self.state != ConnectionState.CONNECTED:
            return
        self.state = ConnectionState.DISCONNECTED
        writer = self.writer
        self.writer = None
        self.reader = None
        self._rx_buffer = ''
        try:
            if writer is not None:
                writer.close()
        except Exception:
            logger.debug(f"{self}: Exception while closing writer", exc_info=True)
        reader_task = self._reader_task
        self._reader_task = None
        if reader_task is not None and reader_task is not asyncio.current_task():
            reader_task.cancel()
        n_rejected = self.pending.reject_all(
            lambda: NotConnectedError(f"{self}: Connection closed before reply was received"))
        if n_rejected > 0:
            logger.debug(f"{self}: Rejected {n_rejected} pending request(s)")
        logger.info(f"{self}: Disconnected")
        if self.on_close is not None:
            self.on_close(exc)

    async def close(self) -> None:
        """Forcibly closes the channel and waits for the reader to finish. Idempotent."""
        self._generation += 1
        reader_task = self._reader_task
        writer = self.writer
        self._shutdown()
        if reader_task is not None:
            await asyncio.wait([reader_task])
        if writer is not None:
            try:
                await writer.wait_closed()
            except Exception:
                logger.debug(f"{self}: Exception while waiting for writer to close", exc_info=True)

    def __str__(self) -> str:
        return f"CommandChannel({self.host}:{self.port})"

    def __repr__(self) -> str:
        return str(self)
