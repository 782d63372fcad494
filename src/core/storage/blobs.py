#!/usr/bin/env python3
"""
Content-addressed blob storage.

Objects are encoded as canonical JSON (sorted keys, compact separators) so
equal content always produces the same bytes and therefore the same CID.
CIDs are CIDv1 strings: multibase ``b`` (lowercase base32, no padding) over
version, codec and a sha2-256 multihash.
"""

import base64
import binascii
import hashlib
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from core.exceptions import BlobNotFoundError, InvalidCIDError, StoreClosedError
from .locks import acquire_lock, release_lock

logger = logging.getLogger(__name__)

CID_VERSION = 1
CODEC_RAW = 0x55
CODEC_JSON = 0x0200
MULTIHASH_SHA2_256 = 0x12
DIGEST_LENGTH = 32

RemoteFetch = Callable[[str], Awaitable[Optional[bytes]]]


def _varint(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _read_varint(data: bytes, offset: int):
    value = 0
    shift = 0
    while offset < len(data):
        byte = data[offset]
        value |= (byte & 0x7F) << shift
        offset += 1
        if not byte & 0x80:
            return value, offset
        shift += 7
    raise ValueError("truncated varint")


def encode_object(obj: Any) -> bytes:
    """Canonical JSON bytes for ``obj``."""
    return json.dumps(obj, sort_keys=True, separators=(',', ':'), ensure_ascii=False, default=str).encode('utf-8')


def compute_cid(data: bytes, codec: int = CODEC_JSON) -> str:
    """
    Compute the CIDv1 string of ``data``.

    Args:
        data: Block bytes
        codec: Multicodec of the block (json or raw)

    Returns:
        Base32 CID string starting with ``b``
    """
    digest = hashlib.sha256(data).digest()
    binary = _varint(CID_VERSION) + _varint(codec) + bytes([MULTIHASH_SHA2_256, DIGEST_LENGTH]) + digest
    return 'b' + base64.b32encode(binary).decode('ascii').lower().rstrip('=')


def decode_cid(cid: str) -> Dict[str, Any]:
    """
    Split a CID string into version, codec and digest.

    Raises:
        InvalidCIDError: If the string is not a CIDv1 this store produces
    """
    if not isinstance(cid, str) or not cid.startswith('b') or len(cid) < 2:
        raise InvalidCIDError(str(cid), "expected base32 multibase prefix 'b'")
    body = cid[1:].upper()
    body += '=' * (-len(body) % 8)
    try:
        binary = base64.b32decode(body)
        version, offset = _read_varint(binary, 0)
        codec, offset = _read_varint(binary, offset)
    except (ValueError, binascii.Error) as e:
        raise InvalidCIDError(cid, str(e))

    if version != CID_VERSION:
        raise InvalidCIDError(cid, f"unsupported version {version}")
    if binary[offset:offset + 2] != bytes([MULTIHASH_SHA2_256, DIGEST_LENGTH]):
        raise InvalidCIDError(cid, "unsupported multihash")
    digest = binary[offset + 2:]
    if len(digest) != DIGEST_LENGTH:
        raise InvalidCIDError(cid, "bad digest length")
    return {'version': version, 'codec': codec, 'digest': digest}


def verify_block(cid: str, data: bytes) -> bool:
    try:
        info = decode_cid(cid)
    except InvalidCIDError:
        return False
    return hashlib.sha256(data).digest() == info['digest']


class BlobStore:
    """
    Base class for content-addressed stores.

    Subclasses implement ``_read``/``_write`` over their own medium; the
    encoding, CID computation and JSON decoding live here.
    """

    def __init__(self, remote: Optional[RemoteFetch] = None):
        self._remote = remote
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        self._running = True

    async def stop(self) -> None:
        self._running = False

    def set_remote(self, remote: Optional[RemoteFetch]) -> None:
        """Attach a peer lookup used when a block is missing locally."""
        self._remote = remote

    def _ensure_running(self) -> None:
        if not self._running:
            raise StoreClosedError(self.__class__.__name__)

    async def _read(self, cid: str) -> Optional[bytes]:
        raise NotImplementedError

    async def _write(self, cid: str, data: bytes) -> None:
        raise NotImplementedError

    async def put_block(self, data: bytes, codec: int = CODEC_RAW) -> str:
        self._ensure_running()
        cid = compute_cid(data, codec)
        if await self._read(cid) is None:
            await self._write(cid, data)
        return cid

    async def get_block(self, cid: str) -> bytes:
        """
        Return the raw bytes stored under ``cid``.

        Looks locally first, then asks the remote fetcher. Remote bytes are
        verified against the CID and cached locally.

        Raises:
            BlobNotFoundError: If no copy is found
            InvalidCIDError: If ``cid`` cannot be decoded
        """
        self._ensure_running()
        decode_cid(cid)
        data = await self._read(cid)
        if data is not None:
            return data

        if self._remote is not None:
            remote_data = await self._remote(cid)
            if remote_data is not None:
                if not verify_block(cid, remote_data):
                    logger.warning(f"Discarding block {cid} from peer: digest mismatch")
                else:
                    await self._write(cid, remote_data)
                    return remote_data

        raise BlobNotFoundError(cid)

    async def has(self, cid: str) -> bool:
        """True when the block is stored locally; peers are not asked."""
        try:
            decode_cid(cid)
        except InvalidCIDError:
            return False
        return await self._read(cid) is not None

    async def put(self, obj: Dict[str, Any]) -> str:
        """Store a JSON-serializable object, returning its CID."""
        return await self.put_block(encode_object(obj), CODEC_JSON)

    async def get(self, cid: str) -> Optional[Dict[str, Any]]:
        """
        Fetch and decode a JSON object.

        Returns:
            The decoded object, or None when it is not found
        """
        try:
            data = await self.get_block(cid)
        except (BlobNotFoundError, InvalidCIDError):
            return None
        return json.loads(data.decode('utf-8'))

    async def put_string(self, text: str) -> str:
        return await self.put_block(text.encode('utf-8'), CODEC_RAW)

    async def get_string(self, cid: str) -> Optional[str]:
        try:
            data = await self.get_block(cid)
        except (BlobNotFoundError, InvalidCIDError):
            return None
        return data.decode('utf-8')


class MemoryBlobStore(BlobStore):
    """Blob store kept in a dict; used by tests and ephemeral nodes."""

    def __init__(self, remote: Optional[RemoteFetch] = None):
        super().__init__(remote)
        self._blocks: Dict[str, bytes] = {}
        self._running = True

    async def _read(self, cid: str) -> Optional[bytes]:
        return self._blocks.get(cid)

    async def _write(self, cid: str, data: bytes) -> None:
        self._blocks[cid] = data


class FilesystemBlobStore(BlobStore):
    """Blocks stored as ``<directory>/blocks/<cid>`` files guarded by a LOCK."""

    def __init__(self, directory: Union[str, Path], remote: Optional[RemoteFetch] = None):
        super().__init__(remote)
        self.directory = Path(directory)
        self._blocks_dir = self.directory / "blocks"
        self._lock_path: Optional[Path] = None

    async def start(self) -> None:
        if self._running:
            return
        self._blocks_dir.mkdir(parents=True, exist_ok=True)
        self._lock_path = acquire_lock(self.directory, owner="blockstore")
        self._running = True
        logger.info(f"Blob store started at {self.directory}")

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._lock_path:
            release_lock(self._lock_path)
            self._lock_path = None
        logger.info("Blob store stopped")

    async def _read(self, cid: str) -> Optional[bytes]:
        path = self._blocks_dir / cid
        if not path.exists():
            return None
        return path.read_bytes()

    async def _write(self, cid: str, data: bytes) -> None:
        path = self._blocks_dir / cid
        tmp_path = path.with_suffix('.tmp')
        tmp_path.write_bytes(data)
        tmp_path.replace(path)
