"""Request/response translation for the relay.

An inbound call names an endpoint, a method, headers and an optional payload.
The translator resolves the endpoint against the configured base URL, sends a
single request upstream and wraps whatever comes back into a JSON envelope.
Upstream bodies are classified as parsed JSON, malformed (kept as raw text) or
unreadable, so the caller always gets structured data back.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union
from urllib.parse import urljoin, urlparse

import requests
from requests.structures import CaseInsensitiveDict

from relay_config import DEFAULT_USER_AGENT

logger = logging.getLogger('proxy')

BODYLESS_METHODS = frozenset({'GET', 'HEAD'})
PROXY_FAILED = 'Proxy request failed'

# (envelope, HTTP status for the relay's own response)
RelayReply = Tuple[Dict[str, Any], int]


class RelayError(Exception):
    pass


class RelayInputError(RelayError):
    """The inbound request cannot be forwarded as given."""


@dataclass(frozen=True)
class InboundRequest:
    endpoint: str
    method: str = 'GET'
    headers: Dict[str, str] = field(default_factory=dict)
    payload: Any = None
    has_payload: bool = False

    @classmethod
    def from_json(cls, body: Any) -> 'InboundRequest':
        """Validate a body-bearing call: {endpoint, method?, headers?, data?}."""
        if not isinstance(body, dict):
            raise RelayInputError('Request body must be a JSON object')

        endpoint = body.get('endpoint')
        if not endpoint:
            raise RelayInputError('Endpoint is required')
        if not isinstance(endpoint, str):
            raise RelayInputError('Endpoint must be a string')

        method = body.get('method')
        if method is None:
            method = 'GET'
        elif not isinstance(method, str):
            raise RelayInputError('Method must be a string')

        headers = body.get('headers')
        if headers is None:
            headers = {}
        elif not isinstance(headers, dict):
            raise RelayInputError('Headers must be an object')
        for name, value in headers.items():
            if not isinstance(value, str):
                raise RelayInputError(f'Header {name!r} must have a string value')

        return cls(
            endpoint=endpoint,
            method=method,
            headers=dict(headers),
            payload=body.get('data'),
            has_payload='data' in body,
        )

    @classmethod
    def from_query(cls, args: Mapping[str, str]) -> 'InboundRequest':
        endpoint = args.get('endpoint')
        if not endpoint:
            raise RelayInputError('Endpoint parameter required')
        return cls(endpoint=endpoint)

    @property
    def sends_body(self) -> bool:
        return self.has_payload and self.method.upper() not in BODYLESS_METHODS


@dataclass(frozen=True)
class OutboundRequest:
    url: str
    method: str
    headers: Dict[str, str]
    body: Optional[str] = None


@dataclass(frozen=True)
class ParsedBody:
    value: Any

    def render(self, status):
        return self.value


@dataclass(frozen=True)
class MalformedBody:
    raw_text: str
    content_type: str

    def render(self, status):
        return {
            'error': 'Invalid response format',
            'raw_response': self.raw_text,
            'content_type': self.content_type,
            'status': status,
        }


@dataclass(frozen=True)
class UnreadableBody:
    details: str

    def render(self, status):
        return {
            'error': 'Failed to parse response',
            'details': self.details,
            'status': status,
        }


BodyClassification = Union[ParsedBody, MalformedBody, UnreadableBody]


@dataclass(frozen=True)
class UpstreamResponse:
    status: int
    reason: str
    headers: Dict[str, str]
    content_type: str
    body: BodyClassification

    @property
    def success(self) -> bool:
        return 200 <= self.status < 300

    @property
    def data(self) -> Any:
        return self.body.render(self.status)


def _reject_constant(name):
    raise ValueError(f'Unsupported JSON constant: {name}')


def parse_json(text: str) -> Any:
    # NaN/Infinity would not survive re-serialization into the envelope
    return json.loads(text, parse_constant=_reject_constant)


def classify_body(content_type: str, text: str) -> BodyClassification:
    """Decide how an upstream body ends up in the envelope.

    A body declared as JSON must parse; failure is reported as a parse error.
    Any other body is parsed opportunistically, since some upstreams mislabel
    JSON, and kept as raw text when that fails.
    """
    if 'application/json' in content_type:
        try:
            return ParsedBody(parse_json(text))
        except ValueError as e:
            return UnreadableBody(str(e))

    try:
        return ParsedBody(parse_json(text))
    except ValueError:
        return MalformedBody(text, content_type)


def resolve_url(base_url: str, endpoint: str) -> str:
    try:
        url = urljoin(base_url, endpoint)
        parsed = urlparse(url)
    except ValueError as e:
        raise RelayInputError(f'Invalid endpoint URL {endpoint!r}: {e}') from e
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise RelayInputError(f'Invalid endpoint URL: {endpoint!r}')
    return url


def merge_headers(defaults: Mapping[str, str], overrides: Mapping[str, str]) -> Dict[str, str]:
    merged = CaseInsensitiveDict(defaults)
    merged.update(overrides)
    return dict(merged.items())


class RelayTranslator:
    """Forwards relay calls to one upstream and normalizes the answers."""

    def __init__(
        self,
        base_url: str,
        transport: Callable[..., requests.Response] = requests.request,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: Optional[float] = None,
    ):
        self.base_url = base_url
        self.transport = transport
        self.user_agent = user_agent
        self.timeout = timeout

    def body_defaults(self):
        return {'Content-Type': 'application/json', 'User-Agent': self.user_agent}

    def query_defaults(self):
        return {'Accept': 'application/json', 'User-Agent': self.user_agent}

    def build_outbound(self, inbound: InboundRequest, defaults: Mapping[str, str]) -> OutboundRequest:
        url = resolve_url(self.base_url, inbound.endpoint)
        headers = merge_headers(defaults, inbound.headers)
        body = json.dumps(inbound.payload) if inbound.sends_body else None
        return OutboundRequest(url=url, method=inbound.method, headers=headers, body=body)

    def forward(self, outbound: OutboundRequest) -> UpstreamResponse:
        logger.info('Proxying %s request to %s', outbound.method, outbound.url)
        csrf_token = CaseInsensitiveDict(outbound.headers).get('X-CSRF-Token')
        if outbound.method.upper() == 'POST' and csrf_token:
            logger.info('CSRF token included in headers: %s...', csrf_token[:10])
        if outbound.body is not None:
            logger.info('Request body included for %s request', outbound.method)

        response = self.transport(
            method=outbound.method,
            url=outbound.url,
            headers=outbound.headers,
            data=outbound.body,
            stream=True,
            timeout=self.timeout,
        )
        try:
            status = response.status_code
            logger.info('Upstream responded %s %s for %s %s',
                        status, response.reason, outbound.method, outbound.url)
            content_type = response.headers.get('Content-Type', '')
            return UpstreamResponse(
                status=status,
                reason=response.reason or '',
                headers=dict(response.headers.items()),
                content_type=content_type,
                body=self._read_body(response, content_type, outbound),
            )
        finally:
            response.close()

    def _read_body(self, response, content_type, outbound):
        # bodies without a declared charset are UTF-8, never requests' ISO-8859-1 fallback
        if 'charset=' not in content_type.lower():
            response.encoding = 'utf-8'
        try:
            text = response.text
        except requests.RequestException as e:
            logger.error('Failed to read response from %s %s (status %s): %s',
                         outbound.method, outbound.url, response.status_code, e)
            return UnreadableBody(str(e))

        result = classify_body(content_type, text)
        if isinstance(result, UnreadableBody):
            logger.error('Failed to parse JSON response from %s %s (status %s): %s',
                         outbound.method, outbound.url, response.status_code, result.details)
        elif 'application/json' not in content_type:
            logger.info('Non-JSON response received: %s...', text[:200])
        return result

    def relay_body(self, body: Any) -> RelayReply:
        """Body-bearing mode: forward an {endpoint, method, headers, data} call."""
        try:
            inbound = InboundRequest.from_json(body)
        except RelayInputError as e:
            return {'success': False, 'error': str(e)}, 400

        try:
            upstream = self.forward(self.build_outbound(inbound, self.body_defaults()))
        except Exception as e:
            return self._failure(e, inbound)

        return {
            'success': upstream.success,
            'status': upstream.status,
            'data': upstream.data,
            'headers': upstream.headers,
        }, 200

    def relay_query(self, args: Mapping[str, str]) -> RelayReply:
        """Query-parameter mode: GET the endpoint and mirror upstream failures."""
        try:
            inbound = InboundRequest.from_query(args)
        except RelayInputError as e:
            return {'success': False, 'error': str(e)}, 400

        try:
            upstream = self.forward(self.build_outbound(inbound, self.query_defaults()))
        except Exception as e:
            return self._failure(e, inbound)

        envelope = {
            'data': upstream.data,
            'success': upstream.success,
            'status': upstream.status,
            'statusText': upstream.reason,
        }
        return envelope, 200 if upstream.success else upstream.status

    def _failure(self, error: Exception, inbound: InboundRequest) -> RelayReply:
        if isinstance(error, RelayInputError):
            logger.warning('Rejected %s %s: %s', inbound.method, inbound.endpoint, error)
            status = 400
        else:
            logger.exception('Proxy error for %s %s', inbound.method, inbound.endpoint)
            status = 500
        return {
            'success': False,
            'error': str(error) or 'Unknown error',
            'details': PROXY_FAILED,
        }, status
