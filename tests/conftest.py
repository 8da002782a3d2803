from unittest.mock import Mock

import pytest

from proxy_server import create_app
from relay_config import RelayConfig
from tests.upstream import BASE_URL, make_response


@pytest.fixture
def transport():
    return Mock(return_value=make_response(body='{"ok": true}'))


@pytest.fixture
def config():
    return RelayConfig(base_url=BASE_URL)


@pytest.fixture
def client(config, transport):
    app = create_app(config, transport=transport)
    app.config['TESTING'] = True
    return app.test_client()
