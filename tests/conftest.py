"""Pytest configuration and fixtures for corsprobe tests."""

import os
import sys

import pytest
import requests
from requests.structures import CaseInsensitiveDict

# Ensure project root (where corsprobe.py lives) is on sys.path
THIS_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(THIS_DIR, os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import corsprobe


@pytest.fixture(autouse=True)
def reset_globals(monkeypatch):
    """main() flips module flags; restore them after every test."""
    monkeypatch.setattr(corsprobe, "DEBUG", False)
    monkeypatch.setattr(corsprobe, "COLOR", True)


def make_response(url, status=200, headers=None):
    resp = requests.Response()
    resp.status_code = status
    resp.url = url
    resp.headers = CaseInsensitiveDict(headers or {})
    return resp


@pytest.fixture
def static_server():
    """Build a fake Session.request that answers every probe with the same headers."""
    def _factory(response_headers=None, status=200):
        def _request(method=None, url=None, **kwargs):
            return make_response(url, status=status, headers=response_headers)
        return _request
    return _factory


@pytest.fixture
def reflecting_server():
    """Fake Session.request that echoes the Origin it receives, with credentials."""
    def _request(method=None, url=None, headers=None, **kwargs):
        origin = headers.get("Origin", "")
        return make_response(url, headers={
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Credentials": "true",
            "Vary": "Origin",
        })
    return _request
