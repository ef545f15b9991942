"""
REST API客户端基类

提供通用的HTTP请求功能，包括：
- 自动重试（tenacity，指数退避）
- 统一错误映射（服务端统一响应体中的 message）
- 超时控制
"""
import asyncio
import json
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

import httpx
from pydantic import BaseModel
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from core.logging_config import get_logger


logger = get_logger(__name__)


class HTTPMethod(Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


@dataclass
class APIResponse:
    """API响应封装"""
    status_code: int
    headers: Dict[str, str]
    data: Any
    raw_content: bytes
    elapsed_ms: float
    request_id: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_error(self) -> bool:
        return self.status_code >= 400

    def json(self) -> Any:
        if self.data is not None:
            return self.data
        return json.loads(self.raw_content)

    @property
    def payload(self) -> Any:
        """统一响应体中的 data 字段"""
        body = self.json()
        return body.get("data") if isinstance(body, dict) else body


class APIError(Exception):
    """API错误基类"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[APIResponse] = None,
        request_id: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response = response
        self.request_id = request_id
        super().__init__(self.message)

    def __str__(self):
        parts = [self.message]
        if self.status_code:
            parts.append(f"Status: {self.status_code}")
        if self.request_id:
            parts.append(f"Request ID: {self.request_id}")
        return " | ".join(parts)


class ValidationError(APIError):
    """请求参数不合法（400/422）"""


class NotFoundError(APIError):
    """资源未找到错误"""


class ConflictError(APIError):
    """资源冲突（如邮箱已注册）"""


class AuthenticationError(APIError):
    """认证错误（邮箱或密码错误）"""


class ServerError(APIError):
    """服务器错误"""


class RetryableAPIError(APIError):
    """可重试的API错误"""


RETRY_STATUS_CODES = {429, 502, 503, 504}

_ERROR_MAP = {
    400: ValidationError,
    401: AuthenticationError,
    403: AuthenticationError,
    404: NotFoundError,
    409: ConflictError,
    422: ValidationError,
    500: ServerError,
    502: ServerError,
    503: ServerError,
    504: ServerError,
}


class BaseAPIClient:
    """
    REST API客户端基类

    子类继承并实现具体的 API 调用；``transport`` 可注入
    ``httpx.MockTransport`` / ``httpx.ASGITransport`` 用于测试。
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 20.0,
        max_retries: int = 2,
        retry_delay: float = 0.5,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.default_headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": "Bloggy-Client/1.0",
        }
        if headers:
            self.default_headers.update(headers)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _build_url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def _raise_for_error(self, response: APIResponse) -> None:
        error_class = _ERROR_MAP.get(response.status_code, APIError)
        message = f"API request failed with status {response.status_code}"
        if isinstance(response.data, dict):
            message = response.data.get("message") or response.data.get("detail") or message
        raise error_class(
            message=message,
            status_code=response.status_code,
            response=response,
            request_id=response.request_id,
        )

    async def _request(
        self,
        method: Union[str, HTTPMethod],
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Union[Dict[str, Any], BaseModel]] = None,
    ) -> APIResponse:
        if isinstance(method, HTTPMethod):
            method = method.value
        url = self._build_url(endpoint)
        if isinstance(json_data, BaseModel):
            json_data = json_data.model_dump(exclude_unset=True)

        async def _send_once() -> APIResponse:
            start = time.perf_counter()
            response = await self.client.request(
                method=method,
                url=url,
                params=params,
                json=json_data,
                headers=self.default_headers,
            )
            elapsed = (time.perf_counter() - start) * 1000

            response_data = None
            if "application/json" in response.headers.get("content-type", ""):
                try:
                    response_data = response.json()
                except json.JSONDecodeError:
                    response_data = None

            api_response = APIResponse(
                status_code=response.status_code,
                headers=dict(response.headers),
                data=response_data,
                raw_content=response.content,
                elapsed_ms=elapsed,
                request_id=response.headers.get("x-request-id"),
            )
            logger.debug(
                "api_response",
                method=method,
                url=url,
                status_code=api_response.status_code,
                elapsed_ms=round(elapsed, 2),
            )

            if api_response.status_code in RETRY_STATUS_CODES:
                raise RetryableAPIError(
                    message=f"Transient API error with status {api_response.status_code}",
                    status_code=api_response.status_code,
                    response=api_response,
                    request_id=api_response.request_id,
                )
            if api_response.is_error:
                self._raise_for_error(api_response)
            return api_response

        retrying = AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(
                multiplier=self.retry_delay,
                min=self.retry_delay,
                max=self.retry_delay * 8,
            ),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError, RetryableAPIError)),
            sleep=asyncio.sleep,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    return await _send_once()
        except httpx.TimeoutException as exc:
            raise APIError(f"Request timeout after {self.timeout}s") from exc
        except httpx.NetworkError as exc:
            raise APIError(f"Network error: {exc}") from exc
        except RetryableAPIError as exc:
            if exc.response is not None:
                self._raise_for_error(exc.response)
            raise

    async def get(self, endpoint: str, **kwargs) -> APIResponse:
        return await self._request(HTTPMethod.GET, endpoint, **kwargs)

    async def post(self, endpoint: str, **kwargs) -> APIResponse:
        return await self._request(HTTPMethod.POST, endpoint, **kwargs)

    async def put(self, endpoint: str, **kwargs) -> APIResponse:
        return await self._request(HTTPMethod.PUT, endpoint, **kwargs)

    async def delete(self, endpoint: str, **kwargs) -> APIResponse:
        return await self._request(HTTPMethod.DELETE, endpoint, **kwargs)
