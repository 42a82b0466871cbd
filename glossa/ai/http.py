"""
HTTP Client

Thin synchronous wrapper around httpx used by the translation pipeline:
- one request per call, no retries
- dry-run mode that builds the debug preview without touching the network
- secrets passed as mask_patterns never appear in debug strings or errors

HTTP error statuses are returned, not raised; only network failures raise.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional
from urllib.parse import quote, quote_plus

import httpx

from glossa.logger import get_logger
from glossa.ai.exceptions import TransportError

logger = get_logger(__name__)

REDACTED = "***"
DRY_RUN_BODY = "[dry-run]"


def get_httpx_timeout(timeout_config: Any) -> httpx.Timeout:
    """
    Convert timeout configuration to httpx.Timeout object.

    Args:
        timeout_config: Either a number (read timeout) or a dict with
            connect, write, read, pool keys

    Returns:
        httpx.Timeout object
    """
    if isinstance(timeout_config, dict):
        return httpx.Timeout(
            connect=timeout_config.get('connect', 10.0),
            write=timeout_config.get('write', 60.0),
            read=timeout_config.get('read', 120.0),
            pool=timeout_config.get('pool', 10.0),
        )
    else:
        timeout_value = float(timeout_config) if timeout_config else 120.0
        return httpx.Timeout(
            connect=10.0,
            write=60.0,
            read=timeout_value,
            pool=10.0,
        )


def redact(text: str, secrets: Optional[Iterable[str]]) -> str:
    """
    Replace every secret in text with ***.

    URL-encoded forms are replaced too, since keys may travel in a query
    string or a form body.
    """
    if not text or not secrets:
        return text
    for secret in secrets:
        if not secret:
            continue
        for variant in {secret, quote(secret, safe=""), quote_plus(secret)}:
            text = text.replace(variant, REDACTED)
    return text


def _format_headers(headers: Dict[str, str]) -> str:
    return "\n".join(f"{name}: {value}" for name, value in headers.items())


@dataclass
class HttpResponse:
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""
    debug_request: str = ""
    debug_response: str = ""


class HttpClient:
    """
    Sends vendor requests.

    Args:
        timeout: Number or dict, see get_httpx_timeout()
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(self, timeout: Any = 120, transport: Optional[httpx.BaseTransport] = None):
        self.timeout = timeout
        self.transport = transport

    def request(
        self,
        method: str,
        url: str,
        body: str = "",
        headers: Optional[Dict[str, str]] = None,
        proxy: Optional[str] = None,
        dry_run: bool = False,
        verbose: bool = False,
        mask_patterns: Optional[Iterable[str]] = None,
    ) -> HttpResponse:
        headers = dict(headers or {})
        secrets = [s for s in (mask_patterns or []) if s]

        debug_request = redact(
            f"{method.upper()} {url}\n{_format_headers(headers)}\n\n{body}",
            secrets,
        )

        if dry_run:
            logger.info(f"Dry-run: skipping {method.upper()} request")
            if verbose:
                logger.info(f"Dry-run request:\n{debug_request}")
            return HttpResponse(
                status=0,
                headers={},
                body=DRY_RUN_BODY,
                debug_request=f"[dry-run] request not sent\n{debug_request}",
                debug_response="[dry-run] no response",
            )

        if verbose:
            logger.info(f"Request:\n{debug_request}")

        client_kwargs = {"timeout": get_httpx_timeout(self.timeout)}
        if self.transport is not None:
            client_kwargs["transport"] = self.transport
        if proxy:
            client_kwargs["proxy"] = proxy

        try:
            with httpx.Client(**client_kwargs) as client:
                response = client.request(method.upper(), url, content=body.encode("utf-8"), headers=headers)
        except httpx.TimeoutException as e:
            logger.error(f"Request timed out: {redact(str(e), secrets)}")
            raise TransportError(
                f"Request timed out: {redact(str(e), secrets)}",
                details={"debug_request": debug_request},
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Network error: {redact(str(e), secrets)}")
            raise TransportError(
                f"Network error: {redact(str(e), secrets)}",
                details={"debug_request": debug_request},
            ) from e

        response_headers = dict(response.headers)
        response_body = response.text
        debug_response = redact(
            f"HTTP {response.status_code}\n{_format_headers(response_headers)}\n\n{response_body}",
            secrets,
        )
        if verbose:
            logger.info(f"Response:\n{debug_response}")
        else:
            logger.debug(f"Received HTTP {response.status_code} ({len(response_body)} chars)")

        return HttpResponse(
            status=response.status_code,
            headers=response_headers,
            body=response_body,
            debug_request=debug_request,
            debug_response=debug_response,
        )
