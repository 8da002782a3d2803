import pytest

from relay_config import DEFAULT_BASE_URL, DEFAULT_USER_AGENT, RelayConfig


def test_defaults():
    config = RelayConfig.from_env({})
    assert config.base_url == DEFAULT_BASE_URL
    assert config.listen_host == '127.0.0.1'
    assert config.listen_port == 5000
    assert config.cors_origins == ('*',)
    assert config.user_agent == DEFAULT_USER_AGENT
    assert config.upstream_timeout is None


def test_from_env():
    config = RelayConfig.from_env({
        'RELAY_BASE_URL': 'https://catalog.example.org/api/',
        'RELAY_HOST': '0.0.0.0',
        'RELAY_PORT': '8080',
        'RELAY_CORS_ORIGINS': 'http://localhost:3000, https://app.example.org',
        'RELAY_UPSTREAM_TIMEOUT': '15',
    })
    assert config.base_url == 'https://catalog.example.org/api/'
    assert config.listen_host == '0.0.0.0'
    assert config.listen_port == 8080
    assert config.cors_origins == ('http://localhost:3000', 'https://app.example.org')
    assert config.upstream_timeout == 15.0


@pytest.mark.parametrize('environ', [
    {'RELAY_BASE_URL': '/relative/only'},
    {'RELAY_BASE_URL': 'ftp://files.example.org'},
    {'RELAY_PORT': 'eighty'},
    {'RELAY_UPSTREAM_TIMEOUT': 'soon'},
    {'RELAY_UPSTREAM_TIMEOUT': '0'},
])
def test_invalid_values_fail_at_startup(environ):
    with pytest.raises(ValueError):
        RelayConfig.from_env(environ)
