"""Configuration for the relay server.

Values come from the environment once at startup and are passed to the app
factory. Nothing re-reads the environment per request.

Environment variables:
  RELAY_BASE_URL          upstream base URL (default http://localhost:4000)
  RELAY_HOST              listen host (default 127.0.0.1)
  RELAY_PORT              listen port (default 5000)
  RELAY_CORS_ORIGINS      comma separated origins allowed by CORS (default *)
  RELAY_USER_AGENT        User-Agent sent upstream
  RELAY_UPSTREAM_TIMEOUT  upstream timeout in seconds (default: none)
"""
import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple
from urllib.parse import urlparse

DEFAULT_BASE_URL = 'http://localhost:4000'
DEFAULT_HOST = '127.0.0.1'
DEFAULT_PORT = 5000
DEFAULT_USER_AGENT = 'Mozilla/5.0 (compatible; Library-PWA/1.0)'


@dataclass(frozen=True)
class RelayConfig:
    base_url: str = DEFAULT_BASE_URL
    listen_host: str = DEFAULT_HOST
    listen_port: int = DEFAULT_PORT
    cors_origins: Tuple[str, ...] = ('*',)
    user_agent: str = DEFAULT_USER_AGENT
    upstream_timeout: Optional[float] = None

    def __post_init__(self):
        parsed = urlparse(self.base_url)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ValueError(f'base URL must be an absolute http(s) URL: {self.base_url!r}')
        if self.upstream_timeout is not None and self.upstream_timeout <= 0:
            raise ValueError('upstream timeout must be positive')

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'RelayConfig':
        env = os.environ if environ is None else environ

        port_text = env.get('RELAY_PORT', str(DEFAULT_PORT))
        try:
            port = int(port_text)
        except ValueError:
            raise ValueError(f'RELAY_PORT must be an integer, got {port_text!r}') from None

        timeout = None
        timeout_text = env.get('RELAY_UPSTREAM_TIMEOUT', '').strip()
        if timeout_text:
            try:
                timeout = float(timeout_text)
            except ValueError:
                raise ValueError(f'RELAY_UPSTREAM_TIMEOUT must be a number, got {timeout_text!r}') from None

        origins = tuple(o.strip() for o in env.get('RELAY_CORS_ORIGINS', '*').split(',') if o.strip())

        return cls(
            base_url=env.get('RELAY_BASE_URL', DEFAULT_BASE_URL),
            listen_host=env.get('RELAY_HOST', DEFAULT_HOST),
            listen_port=port,
            cors_origins=origins or ('*',),
            user_agent=env.get('RELAY_USER_AGENT', DEFAULT_USER_AGENT),
            upstream_timeout=timeout,
        )
