"""
Control connection from the game to the agent.

One TCP connection at a time. The game side dials out: it binds a fixed local port and connects to the agent's
well-known port, lazily, on the first send (and again on the first send after the connection went bad).

Each step is exactly one send (the observation JSON, message boundary = the write) followed by one blocking read
of the agent's reply. The read is a single recv() of up to recv_buffer_size bytes with trailing NULs trimmed.

Errors:
- any connect/write/read failure closes the socket and raises TransportError
- a zero-byte read (agent closed) closes the socket and raises RemoteClosedError
- an unparseable or unknown reply raises ProtocolError and keeps the socket open
- a "shutdown" reply closes the socket and is returned to the caller
"""

import logging
import socket
from enum import Enum
from typing import Optional, Tuple

from celeste_rl.bridge_interaction.errors import RemoteClosedError, TransportError
from celeste_rl.bridge_interaction.messages import AgentMessage, MessageKind, Observation, parse_agent_message

log = logging.getLogger(__name__)

Address = Tuple[str, int]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


class Transport:
    def __init__(
        self,
        agent_address: Address,
        local_address: Address,
        no_delay: bool = True,
        reuse_address: bool = True,
        recv_buffer_size: int = 1024,
        receive_timeout_s: Optional[float] = None,
        connect_timeout_s: Optional[float] = 5.0,
    ):
        self.agent_address = agent_address
        self.local_address = local_address
        self.no_delay = no_delay
        self.reuse_address = reuse_address
        self.recv_buffer_size = recv_buffer_size
        self.receive_timeout_s = receive_timeout_s
        self.connect_timeout_s = connect_timeout_s
        self._sock: Optional[socket.socket] = None
        # Raw text of the last reply, kept for diagnostics
        self.last_response: Optional[str] = None

    @classmethod
    def from_config(cls, config) -> "Transport":
        return cls(
            agent_address=(config.agent_host, config.agent_port),
            local_address=(config.bridge_host, config.bridge_port),
            no_delay=config.no_delay,
            reuse_address=config.reuse_address,
            recv_buffer_size=config.recv_buffer_size,
            receive_timeout_s=config.receive_timeout_s,
            connect_timeout_s=config.connect_timeout_s,
        )

    @property
    def state(self) -> ConnectionState:
        return ConnectionState.CONNECTED if self._sock is not None else ConnectionState.DISCONNECTED

    def _is_healthy(self) -> bool:
        """Connected and the agent has not closed its end (non-blocking peek)."""
        if self._sock is None:
            return False
        timeout = self._sock.gettimeout()
        self._sock.setblocking(False)
        try:
            data = self._sock.recv(1, socket.MSG_PEEK)
        except BlockingIOError:
            return True
        except OSError:
            return False
        finally:
            self._sock.settimeout(timeout)
        # b"" means orderly shutdown by the peer; unread bytes mean the connection is alive
        return len(data) > 0

    def _connect(self) -> None:
        self.close()
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            if self.reuse_address:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            if self.no_delay:
                sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            sock.bind(self.local_address)
            sock.settimeout(self.connect_timeout_s)
            sock.connect(self.agent_address)
            sock.settimeout(self.receive_timeout_s)
        except OSError:
            sock.close()
            raise
        self._sock = sock
        log.info("Connected to agent at %s:%d", *self.agent_address)

    def send(self, observation: Observation) -> None:
        """Write one observation, (re)connecting first if needed. Raises TransportError."""
        data = observation.to_json().encode("utf-8")
        try:
            if not self._is_healthy():
                self._connect()
            self._sock.sendall(data)
        except OSError as err:
            self.close()
            raise TransportError(f"Error sending game state: {err}") from err

    def receive(self) -> AgentMessage:
        """Block for the agent's reply to the last observation. Raises TransportError or ProtocolError."""
        if self._sock is None:
            raise TransportError("Not connected")
        log.debug("Waiting for ACK...")
        try:
            data = self._sock.recv(self.recv_buffer_size)
        except OSError as err:
            self.close()
            raise TransportError(f"Error receiving response from agent: {err}") from err

        if not data:
            log.info("Agent closed connection gracefully")
            self.close()
            raise RemoteClosedError()

        text = data.decode("utf-8", errors="replace").strip("\0").strip()
        self.last_response = text
        message = parse_agent_message(text)
        if message.kind is MessageKind.SHUTDOWN:
            log.info("Shutdown requested by agent")
            self.close()
        elif message.kind is MessageKind.RESET:
            log.info("Reset requested by agent")
        return message

    def close(self) -> None:
        """Release the socket. Safe to call when already closed."""
        sock, self._sock = self._sock, None
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Already reset or never fully connected
            pass
        sock.close()
