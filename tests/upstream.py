"""Fake upstream responses for relay tests."""
import requests
from requests.structures import CaseInsensitiveDict

BASE_URL = 'https://library.example.org/api/'


def make_response(status=200, body='', content_type='application/json', reason='OK', headers=None):
    """Build a fully read requests.Response as an upstream would return it."""
    response = requests.Response()
    response.status_code = status
    response.reason = reason
    response._content = body.encode('utf-8') if isinstance(body, str) else body
    response._content_consumed = True
    all_headers = dict(headers or {})
    if content_type is not None:
        all_headers['Content-Type'] = content_type
    response.headers = CaseInsensitiveDict(all_headers)
    # as requests.adapters.HTTPAdapter.build_response sets it
    response.encoding = requests.utils.get_encoding_from_headers(response.headers)
    return response


class BrokenBodyResponse:
    """Upstream response whose body stream fails while being read."""

    def __init__(self, status=200, content_type='application/json'):
        self.status_code = status
        self.reason = 'OK'
        self.headers = CaseInsensitiveDict({'Content-Type': content_type})
        self.closed = False

    @property
    def text(self):
        raise requests.exceptions.ChunkedEncodingError('Connection broken: IncompleteRead')

    def close(self):
        self.closed = True
