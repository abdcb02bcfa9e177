"""
Agent-side endpoint of the bridge protocol.

The game dials the agent, so the agent listens on the well-known port and accepts exactly one connection.
Observations arrive as bare JSON objects with no length prefix and no terminator, possibly split over many TCP
segments (a 320x180 frame is ~300 KB of base64), so they are framed by decoding incrementally: bytes are
accumulated until they hold one complete JSON object.

API:
- accept(): block until the game connects.
- read_observation() -> Observation: block until the next full observation.
- send_action(AckMessage) / send_reset() / send_shutdown(): reply to the last observation.
"""

import json
import logging
import socket
from typing import Optional

from pydantic import ValidationError

from celeste_rl.bridge_interaction.errors import ProtocolError, RemoteClosedError, TransportError
from celeste_rl.bridge_interaction.messages import AckMessage, Observation, ResetMessage, ShutdownMessage

log = logging.getLogger(__name__)

_decoder = json.JSONDecoder()


class AgentServer:
    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 5000,
        accept_timeout_s: Optional[float] = None,
        recv_chunk_size: int = 65536,
        max_observation_bytes: int = 16 * 1024 * 1024,
    ):
        self.host = host
        self.recv_chunk_size = recv_chunk_size
        self.max_observation_bytes = max_observation_bytes
        self._listener: Optional[socket.socket] = None
        self._conn: Optional[socket.socket] = None
        self._buffer = b""

        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            listener.bind((host, port))
            listener.listen(1)
        except OSError:
            listener.close()
            raise
        listener.settimeout(accept_timeout_s)
        self._listener = listener
        # Port 0 binds an ephemeral port
        self.port = listener.getsockname()[1]
        log.info("Agent endpoint listening on %s:%d", host, self.port)

    @classmethod
    def from_config(cls, config) -> "AgentServer":
        return cls(
            host=config.agent_host,
            port=config.agent_port,
            accept_timeout_s=config.accept_timeout_s,
            recv_chunk_size=config.recv_chunk_size,
            max_observation_bytes=config.max_observation_bytes,
        )

    @property
    def connected(self) -> bool:
        return self._conn is not None

    def accept(self) -> None:
        """Wait for the game to connect. Replaces any previous connection."""
        if self._listener is None:
            raise TransportError("Agent endpoint is closed")
        self._close_connection()
        try:
            conn, addr = self._listener.accept()
        except OSError as err:
            raise TransportError(f"No game connection: {err}") from err
        conn.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        self._conn = conn
        self._buffer = b""
        log.info("Game connected from %s:%d", *addr[:2])

    def _try_decode(self) -> Optional[Observation]:
        text_buffer = self._buffer.lstrip()
        if not text_buffer:
            return None
        try:
            text = text_buffer.decode("utf-8")
            doc, end = _decoder.raw_decode(text)
        except (UnicodeDecodeError, json.JSONDecodeError):
            # Incomplete message, wait for more bytes
            return None
        consumed = len(text[:end].encode("utf-8"))
        self._buffer = text_buffer[consumed:]
        if not isinstance(doc, dict):
            raise ProtocolError("Observation is not a JSON object", text[:end])
        try:
            return Observation.model_validate(doc)
        except ValidationError as err:
            raise ProtocolError(f"Invalid observation ({err.error_count()} errors)", text[:end]) from err

    def read_observation(self) -> Observation:
        if self._conn is None:
            raise TransportError("Not connected")
        while True:
            observation = self._try_decode()
            if observation is not None:
                return observation
            if len(self._buffer) > self.max_observation_bytes:
                raise ProtocolError(f"Observation exceeds {self.max_observation_bytes} bytes")
            try:
                chunk = self._conn.recv(self.recv_chunk_size)
            except OSError as err:
                self._close_connection()
                raise TransportError(f"Error receiving observation: {err}") from err
            if not chunk:
                log.info("Game closed the connection")
                self._close_connection()
                raise RemoteClosedError()
            self._buffer += chunk

    def _send(self, payload: str) -> None:
        if self._conn is None:
            raise TransportError("Not connected")
        try:
            self._conn.sendall(payload.encode("utf-8"))
        except OSError as err:
            self._close_connection()
            raise TransportError(f"Error sending reply: {err}") from err

    def send_action(self, action: AckMessage) -> None:
        self._send(action.to_json())

    def send_reset(self) -> None:
        self._send(ResetMessage().to_json())

    def send_shutdown(self) -> None:
        self._send(ShutdownMessage().to_json())
        self._close_connection()

    def _close_connection(self) -> None:
        conn, self._conn = self._conn, None
        self._buffer = b""
        if conn is None:
            return
        try:
            conn.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        conn.close()

    def close(self) -> None:
        """Close the game connection and stop listening. Idempotent."""
        self._close_connection()
        listener, self._listener = self._listener, None
        if listener is not None:
            listener.close()
