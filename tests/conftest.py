# Back-office API Test Suite - Shared Configuration and Fixtures
#
# This module provides:
# - Test database provisioning (ephemeral SQLite file per test run)
# - Seed data (products, role grants, tax rate)
# - httpx client bound to the WSGI app, with identity helpers
# - Failure message formatting

import os
import sys
import tempfile
import shutil
from pathlib import Path
from decimal import Decimal
from typing import Generator, Optional, Dict, Any
from dataclasses import dataclass

import pytest
import httpx

# Add backend to path for imports
REPO_ROOT = Path(__file__).parent.parent
BACKEND_DIR = REPO_ROOT / "backend"
sys.path.insert(0, str(BACKEND_DIR))

from backoffice import create_app  # noqa: E402
from backoffice.extensions import db  # noqa: E402
from backoffice.models import Product, UserRole  # noqa: E402
from backoffice.services import settings_service  # noqa: E402


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class TestConfig:
    """Test configuration with environment variable overrides."""
    base_url: str = "http://backoffice.test"
    identity_header: str = os.environ.get("TEST_IDENTITY_HEADER", "X-Authenticated-User")
    request_timeout: float = float(os.environ.get("TEST_REQUEST_TIMEOUT", "30"))
    tax_rate_percent: str = os.environ.get("TEST_TAX_RATE_PERCENT", "7.5")


# =============================================================================
# FAILURE MESSAGE HELPER
# =============================================================================

class TestFailure(Exception):
    """
    Failure with a readable scenario/expected/actual breakdown.
    """

    def __init__(
        self,
        scenario: str,
        expected: str,
        actual: str,
        likely_cause: str,
        code_location: str,
        response: Optional[httpx.Response] = None,
        extra_context: Optional[Dict[str, Any]] = None
    ):
        self.scenario = scenario
        self.expected = expected
        self.actual = actual
        self.likely_cause = likely_cause
        self.code_location = code_location
        self.response = response
        self.extra_context = extra_context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        lines = [
            "",
            "=" * 80,
            f"SCENARIO: {self.scenario}",
            f"EXPECTED: {self.expected}",
            f"ACTUAL: {self.actual}",
            f"LIKELY CAUSE: {self.likely_cause}",
            f"CODE LOCATION: {self.code_location}",
        ]
        if self.response is not None:
            lines.append(f"HTTP STATUS: {self.response.status_code}")
            lines.append(f"RESPONSE BODY: {self.response.text[:1000]}")
        for key, value in self.extra_context.items():
            lines.append(f"  {key}: {value}")
        lines.append("=" * 80)
        return "\n".join(lines)


def assert_response(
    response: httpx.Response,
    expected_status: int,
    scenario: str,
    code_location: str,
):
    """Raise TestFailure unless the response has the expected status."""
    if response.status_code != expected_status:
        raise TestFailure(
            scenario=scenario,
            expected=f"HTTP {expected_status}",
            actual=f"HTTP {response.status_code}",
            likely_cause=_infer_cause(response),
            code_location=code_location,
            response=response
        )


def _infer_cause(response: httpx.Response) -> str:
    """Infer likely cause from response status/body."""
    if response.status_code == 401:
        return "No identity - gateway header missing or blank"
    elif response.status_code == 403:
        return "Permission denied - user lacks a role listed in CHECKOUT_ROLES / VOUCHER_ADMIN_ROLES"
    elif response.status_code == 400:
        return "Invalid request - cart, payment or customer validation failed"
    elif response.status_code == 409:
        return "Voucher rejected or duplicate resource"
    elif response.status_code == 503:
        return "Database unreachable or persistence timeout exceeded"
    elif response.status_code == 500:
        return "Server error or partial commit - check backend logs"
    else:
        return f"Unexpected status code {response.status_code}"


# =============================================================================
# HTTP CLIENT WITH IDENTITY HELPERS
# =============================================================================

class APIClient:
    """
    httpx client bound to the WSGI app, acting as one user at a time.
    """

    def __init__(self, app, config: TestConfig, user_id: Optional[str] = None):
        self.config = config
        self.user_id = user_id
        self.client = httpx.Client(
            transport=httpx.WSGITransport(app=app),
            base_url=config.base_url,
            timeout=config.request_timeout,
        )

    def as_user(self, user_id: Optional[str]) -> "APIClient":
        self.user_id = user_id
        return self

    def _headers(self, extra: Optional[Dict] = None) -> Dict:
        headers = {"Content-Type": "application/json"}
        if self.user_id:
            headers[self.config.identity_header] = self.user_id
        if extra:
            headers.update(extra)
        return headers

    def get(self, path: str, **kwargs) -> httpx.Response:
        return self.client.get(path, headers=self._headers(kwargs.pop("headers", None)), **kwargs)

    def post(self, path: str, json: Optional[Dict] = None, **kwargs) -> httpx.Response:
        return self.client.post(path, json=json or {}, headers=self._headers(kwargs.pop("headers", None)), **kwargs)

    def patch(self, path: str, json: Optional[Dict] = None, **kwargs) -> httpx.Response:
        return self.client.patch(path, json=json or {}, headers=self._headers(kwargs.pop("headers", None)), **kwargs)

    def close(self):
        self.client.close()


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture(scope="session")
def test_config() -> TestConfig:
    return TestConfig()


@pytest.fixture(scope="session")
def api_app(test_config: TestConfig):
    """App on a throwaway SQLite file, seeded once per run."""
    tmp_dir = tempfile.mkdtemp(prefix="backoffice_api_")
    db_path = Path(tmp_dir) / "api.sqlite3"
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
        "AUTH_USER_HEADER": test_config.identity_header,
        "DEFAULT_TAX_RATE_PERCENT": "0",
    })

    with app.app_context():
        db.create_all()
        db.session.add_all([
            Product(name="Widget", unit_price=Decimal("10.00"), barcode="1001", is_active=True),
            Product(name="Gadget", unit_price=Decimal("5.00"), barcode="1002", is_active=True),
        ])
        for user_id, role in [("admin-1", "admin"), ("manager-1", "manager"), ("cashier-1", "cashier"), ("cashier-2", "cashier")]:
            db.session.add(UserRole(user_id=user_id, role=role))
        db.session.commit()
        settings_service.set_setting("tax_rate", test_config.tax_rate_percent, user_id="seed")
        db.session.remove()

    yield app

    with app.app_context():
        db.session.remove()
        db.engine.dispose()
    shutil.rmtree(tmp_dir, ignore_errors=True)


@pytest.fixture(scope="session")
def catalog_ids(api_app) -> Dict[str, int]:
    with api_app.app_context():
        ids = {p.barcode: p.id for p in db.session.query(Product).all()}
        db.session.remove()
    return ids


@pytest.fixture
def api_client(api_app, test_config: TestConfig) -> Generator[APIClient, None, None]:
    client = APIClient(api_app, test_config)
    yield client
    client.close()


@pytest.fixture
def manager_client(api_client: APIClient) -> APIClient:
    return api_client.as_user("manager-1")


@pytest.fixture
def cashier_client(api_client: APIClient) -> APIClient:
    return api_client.as_user("cashier-1")


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "smoke: Quick smoke tests for critical paths")
    config.addinivalue_line("markers", "vouchers: Voucher administration and redemption tests")
    config.addinivalue_line("markers", "checkout: Checkout workflow tests")
    config.addinivalue_line("markers", "concurrent: Concurrency tests")
