"""Async HTTP client for the remote media API."""

from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from common.constants import DEFAULT_CHUNK_ENDPOINT, REQUEST_TIMEOUT_SECONDS
from common.logging_config import get_logger
from common.types import MediaDescriptor
from agent.exceptions import TransferFailureError

logger = get_logger(__name__)

UPLOAD_ENDPOINT = "/media-uploads"
INIT_ENDPOINT = "/media-uploads/init"
FINALIZE_ENDPOINT = "/media-uploads/finalize"


@dataclass(frozen=True)
class InitResult:
    upload_id: str
    chunk_endpoint: str


class MediaApiClient:
    """
    httpx client for whole-file uploads and the init/chunk/finalize handshake.

    Every failure (network error, timeout, non-2xx status) surfaces as
    ``TransferFailureError`` tagged with the phase it happened in.
    """

    def __init__(
        self,
        base_url: str,
        auth_token: Optional[str] = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {}
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"

        self.base_url = base_url.rstrip("/")
        self.session = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers=headers,
            transport=transport,
        )
        logger.info(f"Initialized MediaApiClient [base_url={self.base_url}]")

    async def close(self):
        await self.session.aclose()

    async def _post(self, phase: str, endpoint: str, **kwargs) -> httpx.Response:
        try:
            response = await self.session.post(endpoint, **kwargs)
        except httpx.TimeoutException as e:
            raise TransferFailureError(f"Request timed out: {endpoint}", phase=phase) from e
        except httpx.ConnectError as e:
            raise TransferFailureError(f"Cannot connect to media API: {e}", phase=phase) from e
        except httpx.HTTPError as e:
            raise TransferFailureError(f"HTTP error during {phase}: {e}", phase=phase) from e

        if not response.is_success:
            message = self._error_message(response)
            logger.warning(f"Media API rejected {phase}: status={response.status_code} message={message}")
            raise TransferFailureError(message, phase=phase, status_code=response.status_code)

        return response

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        return response.reason_phrase or f"HTTP error! status: {response.status_code}"

    @staticmethod
    def _json_body(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    async def upload_whole(
        self,
        record_id: str,
        metadata: Dict[str, Any],
        file_name: str,
        mime_type: str,
        payload: bytes,
    ) -> Dict[str, Any]:
        data = {"submission_id": record_id}
        for key in ("title", "description"):
            if metadata.get(key) is not None:
                data[key] = str(metadata[key])

        response = await self._post(
            "upload",
            UPLOAD_ENDPOINT,
            data=data,
            files={"media": (file_name, payload, mime_type)},
        )
        logger.debug(f"Uploaded whole file [record_id={record_id}] name={file_name} size={len(payload)}")
        return self._json_body(response)

    async def init_chunked(
        self,
        record_id: str,
        descriptor: MediaDescriptor,
        total_chunks: int,
        correlation_token: str,
    ) -> InitResult:
        """
        Open a chunked upload session.

        Args:
            record_id: Parent record of the file
            descriptor: File name, mime type and size
            total_chunks: Number of chunks that will follow
            correlation_token: Locally generated upload id proposal

        Returns:
            The upload id and chunk endpoint the server selected (defaults applied)
        """
        response = await self._post(
            "init",
            INIT_ENDPOINT,
            json={
                "submission_id": record_id,
                "file_name": descriptor.name,
                "file_size": descriptor.size,
                "file_type": descriptor.mime_type,
                "total_chunks": total_chunks,
                "upload_id": correlation_token,
            },
        )
        body = self._json_body(response)
        return InitResult(
            upload_id=str(body.get("upload_id") or correlation_token),
            chunk_endpoint=body.get("chunk_url") or DEFAULT_CHUNK_ENDPOINT,
        )

    async def upload_chunk(
        self,
        upload_id: str,
        index: int,
        total_chunks: int,
        data: bytes,
        endpoint: str = DEFAULT_CHUNK_ENDPOINT,
    ) -> None:
        await self._post(
            "chunk",
            endpoint,
            data={
                "upload_id": upload_id,
                "chunk_index": str(index),
                "total_chunks": str(total_chunks),
            },
            files={"chunk": ("blob", data, "application/octet-stream")},
        )

    async def finalize_chunked(self, upload_id: str, record_id: str) -> Dict[str, Any]:
        response = await self._post(
            "finalize",
            FINALIZE_ENDPOINT,
            json={"upload_id": upload_id, "submission_id": record_id},
        )
        logger.debug(f"Finalized chunked upload [upload_id={upload_id}]")
        return self._json_body(response)
