"""Malware scanning through a clamd daemon.

Talks the clamd TCP protocol directly: the buffer is streamed with
``INSTREAM`` as 4-byte big-endian length-prefixed chunks terminated by a
zero-length chunk. Replies look like::

    stream: OK
    stream: Eicar-Test-Signature FOUND
    INSTREAM size limit exceeded. ERROR
"""
import asyncio
import logging
import struct
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

import aiofiles

from docvault.errors import ScannerUnavailable

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class ScanResult:
    infected: bool
    signatures: list[str] = field(default_factory=list)


class MalwareScanner(ABC):
    @abstractmethod
    async def scan(self, path: Path) -> ScanResult:
        """Scan a local file. Raises ScannerUnavailable when no verdict is possible."""

    async def ping(self) -> bool:
        return True


class ClamdScanner(MalwareScanner):
    def __init__(self, host: str, port: int = 3310, timeout: float = 60.0):
        self.host = host
        self.port = port
        self.timeout = timeout

    async def scan(self, path: Path) -> ScanResult:
        try:
            reply = await asyncio.wait_for(self._instream(path), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ScannerUnavailable(f"clamd at {self.host}:{self.port} timed out") from e
        except OSError as e:
            raise ScannerUnavailable(f"clamd at {self.host}:{self.port} unreachable: {e}") from e
        return parse_reply(reply)

    async def ping(self) -> bool:
        try:
            reply = await asyncio.wait_for(self._command(b"zPING\0"), timeout=self.timeout)
        except (asyncio.TimeoutError, OSError) as e:
            logger.warning("clamd ping failed: %r", e)
            return False
        return reply == "PONG"

    async def _instream(self, path: Path) -> str:
        reader, writer = await asyncio.open_connection(self.host, self.port)
        try:
            writer.write(b"zINSTREAM\0")
            async with aiofiles.open(path, "rb") as f:
                while True:
                    chunk = await f.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    writer.write(struct.pack("!L", len(chunk)) + chunk)
                    await writer.drain()
            writer.write(struct.pack("!L", 0))
            await writer.drain()
            return _decode(await reader.read())
        finally:
            writer.close()
            await writer.wait_closed()

    async def _command(self, command: bytes) -> str:
        reader, writer = await asyncio.open_connection(self.host, self.port)
        try:
            writer.write(command)
            await writer.drain()
            return _decode(await reader.read())
        finally:
            writer.close()
            await writer.wait_closed()


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").strip("\0").strip()


def parse_reply(reply: str) -> ScanResult:
    """Turn a clamd INSTREAM reply into a ScanResult."""
    _, _, status = reply.partition(": ")
    status = status or reply
    if status == "OK":
        return ScanResult(infected=False)
    if status.endswith(" FOUND"):
        return ScanResult(infected=True, signatures=[status[: -len(" FOUND")]])
    raise ScannerUnavailable(f"clamd could not scan the stream: {reply!r}")
