"""
Route Details Backend: Message Transport Server
=================================================

What:  asyncio TCP server for NestJS-style message patterns.
How:   Every frame is `<length>#<json>`, where length counts the JSON text in
       UTF-16 code units (JavaScript string length). Requests look like
       {"pattern": "route.findOne", "data": "...", "id": "..."}; replies look
       like {"id": "...", "response": {...envelope...}, "isDisposed": true}.
       A request without an id is an event: it is handled, never answered.
Who:   Owned by the FastAPI lifespan (main.py), exposed on app.state.

Per-message lifecycle:
    1. Set the request-id context variable from the message id (log correlation)
    2. Open a session_scope() (commit on success, rollback on error)
    3. Run the pattern handler, which always returns an envelope
    4. Reply with the envelope, or with `err` when the pattern is unknown or
       the unit of work itself failed (e.g. the commit)

Frames on one connection are processed in arrival order; separate
connections are served concurrently.
"""

import asyncio
import codecs
import json
import logging
import uuid
from typing import Any, Dict, List, Optional, Set, Tuple

from sqlalchemy.ext.asyncio import async_sessionmaker

from route_details.config import settings
from route_details.database import async_session_factory, session_scope
from route_details.exceptions import MessageFramingError
from route_details.messaging.patterns import PatternRegistry, normalize_pattern, registry
from route_details.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

NO_MATCHING_HANDLER = "There is no matching message handler defined in the remote service."
FRAME_DELIMITER = "#"
READ_CHUNK_SIZE = 65536
# in UTF-16 code units
MAX_FRAME_LENGTH = 16 * 1024 * 1024


# ══════════════════════════════════════════════════════════════════════════
# Framing
# ══════════════════════════════════════════════════════════════════════════


def _split_utf16(text: str, units: int) -> Optional[Tuple[str, str]]:
    """Splits `text` after `units` UTF-16 code units; None if it is too short."""
    if text.isascii() or all(ord(ch) <= 0xFFFF for ch in text):
        if len(text) < units:
            return None
        return text[:units], text[units:]
    count = 0
    for index, ch in enumerate(text):
        if count == units:
            return text[:index], text[index:]
        count += 2 if ord(ch) > 0xFFFF else 1
        if count > units:
            raise MessageFramingError(
                "Frame length splits a surrogate pair", context={"length": units}
            )
    if count == units:
        return text, ""
    return None


def _check_length_prefix(prefix: str, complete: bool = False) -> Optional[int]:
    """
    Rejects anything but ASCII digits and lengths above MAX_FRAME_LENGTH.

    A partial prefix (no delimiter seen yet) is only checked, not parsed.
    """
    if not (prefix.isascii() and prefix.isdigit()):
        raise MessageFramingError(
            "Invalid frame length prefix", context={"prefix": prefix[:32]}
        )
    if len(prefix) > len(str(MAX_FRAME_LENGTH)) or int(prefix) > MAX_FRAME_LENGTH:
        raise MessageFramingError(
            "Frame length exceeds the maximum", context={"prefix": prefix[:32]}
        )
    return int(prefix) if complete else None


class FrameDecoder:
    """
    Incremental `<length>#<json>` decoder.

    Feed it decoded text as it arrives; it returns every complete message and
    keeps partial frames buffered. Raises MessageFramingError on a corrupt or
    oversized length prefix, or a payload that is not JSON.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._expected: Optional[int] = None

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, chunk: str) -> List[Any]:
        self._buffer += chunk
        messages: List[Any] = []
        while True:
            if self._expected is None:
                delimiter = self._buffer.find(FRAME_DELIMITER)
                if delimiter == -1:
                    if self._buffer:
                        _check_length_prefix(self._buffer)
                    break
                prefix = self._buffer[:delimiter]
                self._expected = _check_length_prefix(prefix, complete=True)
                self._buffer = self._buffer[delimiter + 1:]

            split = _split_utf16(self._buffer, self._expected)
            if split is None:
                break
            payload, self._buffer = split
            self._expected = None
            try:
                messages.append(json.loads(payload))
            except ValueError as exc:
                raise MessageFramingError(
                    "Frame payload is not valid JSON", context={"payload": payload[:64]}
                ) from exc
        return messages


def encode_frame(message: Dict[str, Any]) -> bytes:
    # ensure_ascii keeps the character count equal to the UTF-16 length
    text = json.dumps(message, separators=(",", ":"), ensure_ascii=True)
    return f"{len(text)}{FRAME_DELIMITER}{text}".encode("utf-8")


# ══════════════════════════════════════════════════════════════════════════
# Server
# ══════════════════════════════════════════════════════════════════════════


class MessageServer:
    """
    TCP listener dispatching message patterns to the route handlers.

    Usage:
        server = MessageServer()
        await server.start()
        ...
        await server.stop()

    Pass port=0 to bind an ephemeral port (tests); `port` reports the bound one.
    """

    def __init__(
        self,
        pattern_registry: PatternRegistry = registry,
        session_factory: async_sessionmaker = async_session_factory,
        host: Optional[str] = None,
        port: Optional[int] = None,
    ):
        self.registry = pattern_registry
        self.session_factory = session_factory
        self.host = host if host is not None else settings.message_host
        self._requested_port = port if port is not None else settings.message_port
        self._server: Optional[asyncio.Server] = None
        self._writers: Set[asyncio.StreamWriter] = set()

    @property
    def port(self) -> int:
        if self._server is not None and self._server.sockets:
            return self._server.sockets[0].getsockname()[1]
        return self._requested_port

    @property
    def is_serving(self) -> bool:
        return self._server is not None and self._server.is_serving()

    async def start(self) -> None:
        self._server = await asyncio.start_server(
            self._handle_connection, self.host, self._requested_port
        )
        logger.info(
            "Message transport listening on %s:%d (%d patterns)",
            self.host, self.port, len(self.registry.names),
        )

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        for writer in list(self._writers):
            writer.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("Message transport stopped")

    # ── Connection handling ───────────────────────────────────────────────

    async def _handle_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        peer = writer.get_extra_info("peername")
        logger.debug("Message client connected: %s", peer)
        self._writers.add(writer)
        decoder = FrameDecoder()
        text_decoder = codecs.getincrementaldecoder("utf-8")()
        try:
            while True:
                chunk = await reader.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                try:
                    messages = decoder.feed(text_decoder.decode(chunk))
                except UnicodeDecodeError as exc:
                    raise MessageFramingError("Frame is not valid UTF-8") from exc
                for message in messages:
                    reply = await self.dispatch(message)
                    if reply is not None:
                        writer.write(encode_frame(reply))
                        await writer.drain()
        except MessageFramingError as exc:
            logger.warning("Closing message connection %s: %s", peer, exc.message)
        except ConnectionError as exc:
            logger.info("Message connection %s lost: %s", peer, exc)
        finally:
            self._writers.discard(writer)
            writer.close()
            try:
                await writer.wait_closed()
            except ConnectionError:
                pass
            logger.debug("Message client disconnected: %s", peer)

    async def dispatch(self, message: Any) -> Optional[Dict[str, Any]]:
        """
        Handles one decoded message and returns the reply to send, or None
        for events and malformed packets.
        """
        if not isinstance(message, dict) or "pattern" not in message:
            logger.warning("Ignoring message without a pattern: %r", message)
            return None

        message_id = message.get("id")
        pattern = normalize_pattern(message["pattern"])
        rid = str(message_id)[:8] if message_id is not None else str(uuid.uuid4())[:8]
        token = request_id_var.set(rid)
        try:
            handler = self.registry.get(pattern)
            if handler is None:
                logger.warning("No message handler for pattern %s", pattern)
                if message_id is None:
                    return None
                return {"id": message_id, "err": NO_MATCHING_HANDLER, "isDisposed": True}

            logger.info("Message %s received", pattern)
            try:
                async with session_scope(self.session_factory) as db:
                    envelope = await handler(db, message.get("data"))
            except Exception as exc:
                logger.error("Message %s failed: %s", pattern, exc, exc_info=True)
                if message_id is None:
                    return None
                return {"id": message_id, "err": str(exc) or type(exc).__name__, "isDisposed": True}

            if message_id is None:
                return None
            return {"id": message_id, "response": envelope.to_payload(), "isDisposed": True}
        finally:
            request_id_var.reset(token)
