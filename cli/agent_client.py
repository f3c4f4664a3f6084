"""HTTP client for communicating with the local sync agent."""

import mimetypes
import os
import time
import uuid
from typing import Optional

import httpx

from common.logging_config import get_logger
from cli.config import Config
from cli.constants import GREEN, RESET
from cli.utils import format_file_size, format_progress_bar, format_status

logger = get_logger(__name__)


class AgentClient:
    """HTTP client for the agent API with retry logic and error handling."""

    def __init__(self, config: Config, transport: Optional[httpx.BaseTransport] = None):
        """
        Initialize agent client.

        Args:
            config: Configuration instance
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.config = config
        self.session = httpx.Client(
            base_url=config.get_base_url(),
            timeout=config.get_timeout(),
            transport=transport
        )
        self.request_id = None
        logger.info(f"Initialized AgentClient [base_url={config.get_base_url()}]")

    def close(self) -> None:
        self.session.close()

    def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        max_retries: Optional[int] = None,
        idempotent: bool = True,
        **kwargs
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic on 5xx errors and network failures.

        Args:
            method: HTTP method (GET, POST, ...)
            endpoint: API endpoint path
            max_retries: Max retry attempts (uses config default if None)
            idempotent: When False, only failures where the request never reached
                the agent (connect errors and connect timeouts) are retried
            **kwargs: Additional arguments to pass to httpx request

        Returns:
            HTTP response object

        Raises:
            ConnectionError: If max retries exceeded or connection fails
        """
        retry_config = self.config.get_retry_config()
        max_retries = max_retries if max_retries is not None else retry_config['max_retries']
        backoff = retry_config['retry_backoff_multiplier']

        last_exception = None

        self.request_id = str(uuid.uuid4())
        kwargs.setdefault('headers', {})
        kwargs['headers']['X-Request-ID'] = self.request_id

        logger.debug(f"Making request: {method} {endpoint} [request_id={self.request_id}]")

        for attempt in range(max_retries + 1):
            try:
                response = self.session.request(method, endpoint, **kwargs)

                logger.debug(
                    f"Response received: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
                )

                if response.status_code >= 500 and idempotent and attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Server error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} status={response.status_code}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                    continue

                if 400 <= response.status_code < 500:
                    logger.warning(
                        f"Client error: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
                    )

                return response

            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_exception = e
                sent = not isinstance(e, (httpx.ConnectError, httpx.ConnectTimeout))
                if attempt < max_retries and (idempotent or not sent):
                    delay = backoff ** attempt
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} error={type(e).__name__}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                    continue
                logger.error(
                    f"Network error, giving up: {method} {endpoint} error={e} [request_id={self.request_id}]"
                )
                break

        if isinstance(last_exception, httpx.TimeoutException):
            raise ConnectionError("Request timed out. The agent may be busy syncing.")
        if isinstance(last_exception, httpx.ConnectError):
            raise ConnectionError("Cannot connect to sync agent. Is it running?")
        raise ConnectionError("Max retries exceeded")

    def _format_error(self, response: httpx.Response) -> str:
        """
        Map HTTP errors to user-friendly messages.
        """
        try:
            error_data = response.json()
            detail = error_data.get('detail', 'Unknown error')
            code = error_data.get('code', 'UNKNOWN')
        except ValueError:
            error_data = {}
            detail = response.text if response.text else 'Unknown error'
            code = 'UNKNOWN'

        if code == 'STORAGE_EXHAUSTED':
            available = format_file_size(int(error_data.get('available', 0)))
            needed = format_file_size(int(error_data.get('needed', 0)))
            return f"Not enough storage space. Available: {available}, Needed: {needed}"

        error_messages = {
            'NOT_FOUND': 'Submission not found.',
            'STORE_ERROR': 'The local queue database failed. Check the agent logs.',
            'INTERNAL_ERROR': 'The sync agent hit an internal error.',
        }

        if code == 'VALIDATION_ERROR':
            return f"Invalid submission: {detail}"
        if code in error_messages:
            return error_messages[code]

        status_messages = {
            400: 'Bad request',
            404: 'Not found',
            413: 'File too large',
            500: 'Server error',
            503: 'Service unavailable',
            507: 'Insufficient storage',
        }

        message = status_messages.get(response.status_code, detail)
        return f"{message} (Code: {code})" if code != 'UNKNOWN' else message

    def submit(self, title: str, file_paths: list[str], description: Optional[str] = None) -> str:
        """
        Queue a submission on the agent.

        Args:
            title: Submission title
            file_paths: Local paths of the media files
            description: Optional description

        Returns:
            Result message with the new record id
        """
        files = []
        for file_path in file_paths:
            if not os.path.exists(file_path):
                return f"Error: File not found: {file_path}"
            if not os.path.isfile(file_path):
                return f"Error: Not a file: {file_path}"

        total = 0
        for file_path in file_paths:
            with open(file_path, 'rb') as f:
                data = f.read()
            total += len(data)
            name = os.path.basename(file_path)
            mime_type = mimetypes.guess_type(name)[0] or 'application/octet-stream'
            files.append(('files', (name, data, mime_type)))

        form = {'title': title}
        if description is not None:
            form['description'] = description

        logger.info(f"Submitting {len(files)} files ({total} bytes) title={title!r}")
        try:
            response = self._request_with_retry(
                'POST', '/submissions', idempotent=False, data=form, files=files
            )
        except ConnectionError as e:
            logger.error(f"Connection error during submit: {e}")
            return f"Error: {e}"

        if response.status_code == 201:
            record_id = response.json()['record_id']
            return (
                f"{GREEN}Queued{RESET} {len(files)} file(s), {format_file_size(total)}\n"
                f"Record ID: {record_id}"
            )
        return f"Submit failed: {self._format_error(response)}"

    def sync(self) -> str:
        try:
            response = self._request_with_retry('POST', '/sync')
        except ConnectionError as e:
            return f"Error: {e}"
        if response.status_code != 200:
            return f"Sync failed: {self._format_error(response)}"
        data = response.json()
        return f"Sync finished: {data['synced_count']} synced, {data['failed_count']} failed"

    def retry(self, include_exhausted: bool = False) -> str:
        params = {'include_exhausted': 'true' if include_exhausted else 'false'}
        try:
            response = self._request_with_retry('POST', '/sync/retry', params=params)
        except ConnectionError as e:
            return f"Error: {e}"
        if response.status_code != 200:
            return f"Retry failed: {self._format_error(response)}"
        data = response.json()
        if data['synced_count'] == 0 and data['failed_count'] == 0:
            return "Nothing was retried (no eligible failed items, or offline)."
        return f"Retry finished: {data['synced_count']} synced, {data['failed_count']} failed"

    def stats(self) -> str:
        try:
            response = self._request_with_retry('GET', '/queue/stats')
        except ConnectionError as e:
            return f"Error: {e}"
        if response.status_code != 200:
            return f"Stats failed: {self._format_error(response)}"
        data = response.json()
        return (
            f"Total: {data['total']}  Pending: {data['pending']}  Uploading: {data['uploading']}  "
            f"Synced: {data['synced']}  Failed: {data['failed']}"
        )

    def list_submissions(self) -> str:
        try:
            response = self._request_with_retry('GET', '/submissions')
        except ConnectionError as e:
            return f"Error: {e}"
        if response.status_code != 200:
            return f"List failed: {self._format_error(response)}"

        records = response.json()['records']
        if not records:
            return "No submissions queued."

        lines = []
        for record in records:
            state = format_status('synced') if record['synced'] else format_status('pending')
            size = sum(m['size'] for m in record['media'])
            lines.append(
                f"{record['record_id']}  {state}  {record['title']}  "
                f"({len(record['media'])} file(s), {format_file_size(size)})"
            )
        return "\n".join(lines)

    def show(self, record_id: str) -> str:
        try:
            response = self._request_with_retry('GET', f'/submissions/{record_id}')
        except ConnectionError as e:
            return f"Error: {e}"
        if response.status_code != 200:
            return f"Show failed: {self._format_error(response)}"

        record = response.json()
        lines = [
            f"Title: {record['title']}",
            f"Description: {record['description'] or '-'}",
            f"Created: {record['created_at']}",
            f"Synced: {'yes' if record['synced'] else 'no'}",
            "Files:",
        ]
        for item in record['items']:
            lines.append(self._format_item(item))
        return "\n".join(lines)

    def queue(self) -> str:
        try:
            response = self._request_with_retry('GET', '/queue')
        except ConnectionError as e:
            return f"Error: {e}"
        if response.status_code != 200:
            return f"Queue failed: {self._format_error(response)}"

        items = response.json()['items']
        if not items:
            return "Queue is empty."
        return "\n".join(self._format_item(item) for item in items)

    @staticmethod
    def _format_item(item: dict) -> str:
        line = (
            f"  {item['file_name']}  {format_file_size(item['file_size'])}  "
            f"{format_status(item['status'])}  {format_progress_bar(item['upload_progress'])}  "
            f"attempts {item['attempts']}/{item['max_attempts']}"
        )
        if item.get('error'):
            line += f"\n    last error: {item['error']}"
        return line

    def status(self) -> str:
        try:
            response = self._request_with_retry('GET', '/sync/status')
        except ConnectionError as e:
            return f"Error: {e}"
        if response.status_code != 200:
            return f"Status failed: {self._format_error(response)}"
        data = response.json()
        return f"Sync status: {data['status']}  Network: {'online' if data['online'] else 'offline'}"

    def set_online(self, online: bool) -> str:
        endpoint = '/connectivity/online' if online else '/connectivity/offline'
        try:
            response = self._request_with_retry('POST', endpoint)
        except ConnectionError as e:
            return f"Error: {e}"
        if response.status_code != 200:
            return f"Connectivity update failed: {self._format_error(response)}"
        data = response.json()
        return f"Network marked {'online' if data['online'] else 'offline'} (sync status: {data['status']})"
