import os
import sys

import pytest

# Ensure repo root is on sys.path for imports like 'apps.*' and 'packages.*'
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)


@pytest.fixture(autouse=True)
def _no_real_brapi_token(monkeypatch):
    # Keep a developer's .env token out of tests
    monkeypatch.delenv("BRAPI_TOKEN", raising=False)
