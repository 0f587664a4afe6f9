"""
Content Store
=============

Content-addressed document storage on IPFS (Kubo HTTP RPC API).

Documents are stored as canonical JSON, so identical documents always map
to the same CID. Reads consume the response as a byte stream and only parse
once the whole object has arrived.
"""

import asyncio
import base64
import hashlib
import json
import logging
from typing import Any, Dict, Optional, Protocol

import aiohttp

from .canonical import canonicalize
from .errors import NotFound, StorageFailure

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

# Kubo answers 500 with one of these for unknown or malformed references
_NOT_FOUND_MARKERS = ("not found", "invalid path", "no link named", "invalid cid")


class ContentStore(Protocol):
    """What the pipeline needs from a content-addressed store"""

    async def ensure_connected(self) -> "ContentStore": ...

    async def store(self, document: Dict[str, Any]) -> str: ...

    async def retrieve(self, reference: str) -> Dict[str, Any]: ...

    async def close(self) -> None: ...


def _decode(reference: str, raw: bytes) -> Dict[str, Any]:
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise StorageFailure(
            "Stored content is not a JSON document", {"cid": reference}
        ) from exc


class IPFSContentStore:
    """
    IPFS client over aiohttp

    Args:
        api_url: Kubo RPC base URL, e.g. http://localhost:5001
        api_key: Optional bearer token for hosted gateways
        timeout_seconds: Total timeout per request
    """

    def __init__(self, api_url: str, api_key: str = "", timeout_seconds: float = 30.0):
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: Optional[aiohttp.ClientSession] = None

    # ==================== LIFECYCLE ====================

    async def ensure_connected(self) -> "IPFSContentStore":
        """Open the HTTP session once; later calls return the same handle"""
        if self._session is None or self._session.closed:
            headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
            self._session = aiohttp.ClientSession(headers=headers, timeout=self.timeout)
            logger.info("IPFS session opened (%s)", self.api_url)
        return self

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _ready_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            raise StorageFailure("Content store is not connected")
        return self._session

    # ==================== STORE / RETRIEVE ====================

    async def store(self, document: Dict[str, Any]) -> str:
        """
        Add a document and return its CID

        Raises:
            StorageFailure: on transport errors or non-success responses
        """
        session = self._ready_session()
        form = aiohttp.FormData()
        form.add_field(
            "file", canonicalize(document),
            filename="document.json", content_type="application/json"
        )

        try:
            async with session.post(
                f"{self.api_url}/api/v0/add",
                params={"pin": "true", "cid-version": "1"},
                data=form,
            ) as response:
                if response.status != 200:
                    detail = await response.text()
                    raise StorageFailure(
                        "Failed to store document on IPFS",
                        {"status": response.status, "detail": detail[:500]}
                    )
                body = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise StorageFailure("Failed to store document on IPFS", {"cause": str(exc)}) from exc

        cid = body.get("Hash")
        if not cid:
            raise StorageFailure("IPFS add returned no CID", {"body": body})
        logger.info("Stored document on IPFS: %s", cid)
        return cid

    async def retrieve(self, reference: str) -> Dict[str, Any]:
        """
        Fetch and decode the document behind a CID

        Raises:
            NotFound: if IPFS does not know the reference
            StorageFailure: on transport errors or undecodable content
        """
        session = self._ready_session()

        try:
            async with session.post(
                f"{self.api_url}/api/v0/cat", params={"arg": reference}
            ) as response:
                if response.status != 200:
                    detail = (await response.text())[:500]
                    if response.status == 404 or any(
                        marker in detail.lower() for marker in _NOT_FOUND_MARKERS
                    ):
                        raise NotFound("Document not found", {"cid": reference, "detail": detail})
                    raise StorageFailure(
                        "Failed to fetch document from IPFS",
                        {"cid": reference, "status": response.status, "detail": detail}
                    )

                chunks = []
                async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                    chunks.append(chunk)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise StorageFailure(
                "Failed to fetch document from IPFS", {"cid": reference, "cause": str(exc)}
            ) from exc

        return _decode(reference, b"".join(chunks))


class InMemoryContentStore:
    """
    Local content-addressed store

    References are CIDv1 (raw codec, sha2-256) strings over the canonical
    bytes, so determinism matches the IPFS store.
    """

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.available = True
        self.connected = False
        self.calls = []

    async def ensure_connected(self) -> "InMemoryContentStore":
        self.connected = True
        return self

    async def close(self) -> None:
        self.connected = False

    @staticmethod
    def reference_for(data: bytes) -> str:
        multihash = bytes([0x01, 0x55, 0x12, 0x20]) + hashlib.sha256(data).digest()
        return "b" + base64.b32encode(multihash).decode("ascii").lower().rstrip("=")

    async def store(self, document: Dict[str, Any]) -> str:
        self.calls.append("store")
        if not self.available:
            raise StorageFailure("Failed to store document on IPFS", {"cause": "unavailable"})
        data = canonicalize(document)
        reference = self.reference_for(data)
        self.objects[reference] = data
        return reference

    async def retrieve(self, reference: str) -> Dict[str, Any]:
        self.calls.append("retrieve")
        if not self.available:
            raise StorageFailure("Failed to fetch document from IPFS", {"cause": "unavailable"})
        if reference not in self.objects:
            raise NotFound("Document not found", {"cid": reference})
        return _decode(reference, self.objects[reference])
