"""HTTP client for communicating with the relay gateway."""

import os
import time
import uuid
from typing import Optional

import httpx

from common.logging_config import get_logger
from cli.config import Config
from cli.utils import ProgressFileWrapper, format_epoch_ms, format_file_size

logger = get_logger(__name__)


class GatewayClient:
    """HTTP client for the gateway operator API with retry logic and error handling."""

    def __init__(self, config: Config, transport: Optional[httpx.BaseTransport] = None):
        """
        Initialize gateway client.

        Args:
            config: Configuration instance
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.config = config
        self.transport = transport
        self.session = httpx.Client(
            base_url=config.get_base_url(),
            timeout=config.get_timeout(),
            transport=transport
        )
        self.request_id = None
        logger.info(f"Initialized GatewayClient [base_url={config.get_base_url()}]")

    def _calculate_upload_timeout(self, file_size: int) -> float:
        """
        Calculate timeout for upload based on file size.

        Args:
            file_size: File size in bytes

        Returns:
            Timeout in seconds (60s base + 1s per MB, the gateway relays parts one by one)
        """
        return 60.0 + file_size / (1024 * 1024)

    def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        max_retries: Optional[int] = None,
        **kwargs
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic on 5xx errors and network failures.

        Args:
            method: HTTP method (GET, POST, PUT, ...)
            endpoint: API endpoint path
            max_retries: Max retry attempts (uses config default if None)
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
        if 'headers' not in kwargs:
            kwargs['headers'] = {}
        kwargs['headers']['X-Request-ID'] = self.request_id

        logger.debug(
            f"Making request: {method} {endpoint} [request_id={self.request_id}]"
        )

        for attempt in range(max_retries + 1):
            try:
                response = self.session.request(method, endpoint, **kwargs)

                logger.debug(
                    f"Response received: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
                )

                if 400 <= response.status_code < 500:
                    logger.warning(
                        f"Client error: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
                    )
                    return response

                if response.status_code >= 500 and attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Server error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} status={response.status_code}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                    continue

                return response

            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_exception = e
                if attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} error={type(e).__name__}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                    continue
                logger.error(
                    f"Network error (max retries exceeded): {method} {endpoint} error={e} [request_id={self.request_id}]"
                )

        if isinstance(last_exception, httpx.TimeoutException):
            raise ConnectionError("Request timed out. The gateway may be busy relaying a large file.")
        if isinstance(last_exception, httpx.ConnectError):
            raise ConnectionError("Cannot connect to the relay gateway. Is it running?")
        raise ConnectionError("Max retries exceeded")

    def _format_error(self, response: httpx.Response) -> str:
        """
        Map HTTP errors to user-friendly messages.

        Args:
            response: HTTP response object

        Returns:
            User-friendly error message
        """
        try:
            error_data = response.json()
            detail = error_data.get('detail', 'Unknown error')
            code = error_data.get('code', 'UNKNOWN')
        except ValueError:
            detail = response.text if response.text else 'Unknown error'
            code = 'UNKNOWN'

        error_messages = {
            'INVALID_API_KEY': 'Not authenticated. Set "api_key" in ~/.tgrelay/config.json or TGRELAY_API_KEY.',
            'NO_PENDING_CODE': 'No code pending. Run: send-code',
            'TWO_FACTOR_UNSUPPORTED': 'The relay account has two-step verification enabled. Disable it, then run: reset',
            'INVALID_AUTH_STATE': f'Not possible in the current sign-in state: {detail}',
            'AUTH_REQUIRED': 'Relay account not signed in. Run: send-code, then verify-code <code>',
            'SESSION_REVOKED': 'The relay account session was revoked. Sign in again.',
            'FILE_NOT_FOUND': 'File not found on the gateway.',
            'UPLOAD_NOT_PERMITTED': 'This user is not allowed to upload files.',
            'FILE_TOO_LARGE': 'File exceeds the gateway size limit.',
            'PART_UPLOAD_FAILED': f'Upload failed part-way and must be restarted: {detail}',
            'BACKEND_REJECTED': f'Telegram rejected the request: {detail}',
            'BACKEND_UNAVAILABLE': 'Telegram is currently unreachable. Please try again later.',
        }

        if code in error_messages:
            return error_messages[code]

        status_messages = {
            400: 'Bad request',
            401: 'Not authenticated',
            403: 'Access forbidden',
            404: 'Not found',
            409: 'Conflict',
            413: 'File too large',
            422: 'Invalid request',
            500: 'Server error',
            502: 'Telegram error',
            503: 'Service unavailable',
        }

        message = status_messages.get(response.status_code, detail)
        if code == 'UNKNOWN' and isinstance(detail, str) and detail != 'Unknown error':
            return f"{message}: {detail}"
        return f"{message} (Code: {code})" if code != 'UNKNOWN' else message

    def _get_auth_header(self) -> dict:
        """
        Get X-API-Key header.

        Raises:
            ValueError: If no API key is configured
        """
        api_key = self.config.get_api_key()
        if not api_key:
            raise ValueError('No API key configured. Set "api_key" in ~/.tgrelay/config.json or TGRELAY_API_KEY.')
        return {'X-API-Key': api_key}

    def _call(self, method: str, endpoint: str, expected_status: int = 200, auth: bool = True, **kwargs):
        """
        Shared request path for operator commands.

        Returns:
            Tuple of (json_body, None) on success or (None, error_message)
        """
        if auth:
            try:
                kwargs['headers'] = self._get_auth_header()
            except ValueError as e:
                return None, f"Error: {e}"

        try:
            response = self._request_with_retry(method, endpoint, **kwargs)
        except ConnectionError as e:
            logger.error(f"Connection error: {method} {endpoint}: {e}")
            return None, f"Error: {e}"

        if response.status_code != expected_status:
            return None, f"Error: {self._format_error(response)}"
        return response.json(), None

    def status(self) -> str:
        """
        Show the relay account state.
        """
        data, error = self._call('GET', '/auth/status')
        if error:
            return error

        if data['authorized']:
            identity = data.get('identity') or {}
            name = identity.get('username') or identity.get('first_name') or 'unknown'
            return f"Relay account: authorized as {name} (ID: {identity.get('user_id')})"
        if data['state'] == 'two_factor_required':
            return "Relay account: two-step verification required (unsupported). Disable it, then run: reset"
        if data['state'] == 'code_sent':
            return "Relay account: code sent, run: verify-code <code>"
        return "Relay account: not signed in. Run: send-code"

    def send_code(self) -> str:
        logger.info("Requesting relay account sign-in code")
        data, error = self._call('POST', '/auth/send-code')
        if error:
            return error
        return "Code sent to the relay account. Run: verify-code <code>"

    def verify_code(self, code: str) -> str:
        logger.info("Submitting relay account sign-in code")
        data, error = self._call('POST', '/auth/verify-code', json={'code': code})
        if error:
            return error

        identity = data['identity']
        name = identity.get('username') or identity.get('first_name') or identity['user_id']
        return f"Signed in as {name}. Large uploads are now enabled."

    def reset(self) -> str:
        data, error = self._call('POST', '/auth/reset')
        if error:
            return error
        return f"Relay session reset (state: {data['state']})."

    def create_link(self, file_id: str, client_ip: Optional[str] = None) -> str:
        params = {'client_ip': client_ip} if client_ip else {}
        data, error = self._call('POST', f'/files/{file_id}/signed-link', params=params)
        if error:
            return error
        return f"Signed link:\n  {data['url']}\n  Expires: {format_epoch_ms(data['expires'])}"

    def file_info(self, file_id: str) -> str:
        data, error = self._call('GET', f'/download/{file_id}/info', auth=False)
        if error:
            return error
        return (
            f"{data['file_name']} (ID: {data['file_id'][:8]}...)\n"
            f"  Type: {data['mime_type']}\n"
            f"  Size: {format_file_size(data['size_bytes'])}\n"
            f"  Downloads: {data['download_count']}\n"
            f"  Uploaded: {data['uploaded_at']}"
        )

    def upload(self, file_path: str, telegram_id: int) -> str:
        """
        Upload a local file through the gateway.

        Args:
            file_path: Local file path
            telegram_id: User the upload is made for

        Returns:
            Result message
        """
        try:
            headers = self._get_auth_header()
        except ValueError as e:
            return f"Error: {e}"

        path = os.path.expanduser(file_path)
        if not os.path.isfile(path):
            return f"Error: File not found: {file_path}"

        file_size = os.path.getsize(path)
        if file_size == 0:
            return f"Error: File is empty: {file_path}"

        filename = os.path.basename(path)
        upload_timeout = self._calculate_upload_timeout(file_size)
        logger.info(f"Uploading {filename} size={file_size} for telegram_id={telegram_id}")

        try:
            with ProgressFileWrapper(path, file_size, filename) as wrapped:
                with httpx.Client(
                    base_url=self.config.get_base_url(),
                    timeout=upload_timeout,
                    transport=self.transport
                ) as upload_client:
                    response = upload_client.post(
                        '/files',
                        files={'file': (filename, wrapped)},
                        data={'telegram_id': str(telegram_id)},
                        headers=headers
                    )
        except httpx.ConnectError:
            return f"Error uploading {file_path}: Cannot connect to the relay gateway"
        except httpx.TimeoutException:
            return (
                f"Error uploading {file_path}: Upload timed out "
                f"(file size: {format_file_size(file_size)}, timeout: {upload_timeout:.1f}s)"
            )

        if response.status_code != 201:
            return f"Error uploading {file_path}: {self._format_error(response)}"

        result = response.json()
        return (
            f"Uploaded: {result['file_name']} (ID: {result['file_id']}, "
            f"Size: {format_file_size(result['size_bytes'])})\n"
            f"  Download: {result['download_url']}"
        )
