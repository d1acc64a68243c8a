"""
Critical Integration Tests for ShopDesk
=======================================

Focused tests covering the integration points most likely to break.
Run with: pytest tests/test_critical.py -v

NOTE: pytest is listed under extras_require["dev"] in setup.py.
Install with: pip install -e ".[dev]"
"""

import io
from unittest.mock import patch, MagicMock

import pytest
import requests
from flask import Flask

from shopdesk import ShopDesk
from shopdesk.core.api_client import StoreApiClient
from shopdesk.core.errors import ConfigurationError
from shopdesk.modules.products.routes import discard_workflows, workflow_count


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

def _make_app(**overrides):
    app = Flask(__name__)
    app.config["TESTING"] = True
    app.config["SECRET_KEY"] = "test-secret"
    app.config["BASE_URL"] = "http://store.test"
    # Blank rather than None so values from the environment are not picked up
    app.config["CLOUDINARY_NAME"] = "demo-cloud"
    app.config["CLOUDINARY_API_KEY"] = "key"
    app.config["CLOUDINARY_API_SECRET"] = "secret"
    app.config["CLOUDINARY_URL"] = ""
    app.config["LOGIN_URL"] = ""
    app.config.update(overrides)
    return app


@pytest.fixture
def app():
    """Flask app with every ShopDesk module registered."""
    app = _make_app()
    ShopDesk(app)
    yield app
    discard_workflows()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_client(client):
    """Client carrying the store bearer token cookie."""
    client.set_cookie("auth_token", "tok-123")
    return client


class FakeUploader:
    def __init__(self):
        self.calls = []

    def upload(self, file_bytes, folder=None, filename=None, timeout=None):
        self.calls.append((file_bytes, folder, filename))
        return {"secure_url": "https://res.cloudinary.com/demo/lamp.jpg", "public_id": "lamp"}


@pytest.fixture
def fake_store(app):
    """Swap the media client and store API for fakes."""
    api = MagicMock()
    api.save_product.return_value = {"success": True}
    api.get_product.return_value = {
        "id": 42, "name": "Oak Table", "imageUrl": "https://img/oak.jpg",
        "category": "Furniture", "subCategory": "Tables",
    }
    ext = app.extensions["shopdesk"]
    ext.media_client = FakeUploader()
    ext.build_api_client = lambda token=None: api
    return api


def _json_response(body, status=200):
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = body
    return resp


EMPTY_NEWSLETTER = {
    "success": True,
    "data": [],
    "pagination": {"currentPage": 1, "itemsPerPage": 10, "offset": 0, "total": 0, "hasMore": False},
}


# ---------------------------------------------------------------------------
# 1. Extension initialisation -- ShopDesk(app) does not raise
# ---------------------------------------------------------------------------

def test_extension_initialisation():
    """ShopDesk(app) boots without errors and stores itself on the app."""
    app = _make_app()
    shopdesk = ShopDesk(app)

    assert "shopdesk" in app.extensions
    assert app.extensions["shopdesk"] is shopdesk
    assert shopdesk.media_client.configured
    assert shopdesk.configuration_errors == []


# ---------------------------------------------------------------------------
# 2. Blueprint registration -- feature flags decide which modules load
# ---------------------------------------------------------------------------

def test_all_blueprints_registered(app):
    registered = app.extensions["shopdesk"].get_registered_modules()
    assert registered == ["products", "newsletter"]


def test_feature_flag_disables_module():
    app = _make_app()
    shopdesk = ShopDesk(app, {"features": {"newsletter": False}})

    assert shopdesk.get_registered_modules() == ["products"]
    rules = [rule.rule for rule in app.url_map.iter_rules()]
    assert not any(rule.startswith("/admin/newsletter") for rule in rules)


# ---------------------------------------------------------------------------
# 3. Template context -- shopdesk_config and brand_name are injected
# ---------------------------------------------------------------------------

def test_template_context_injection(app):
    with app.test_request_context("/"):
        ctx = {}
        for func in app.template_context_processors[None]:
            ctx.update(func())

        assert isinstance(ctx["shopdesk_config"], dict)
        assert ctx["shopdesk_config"]["base_url"] == "http://store.test"
        assert isinstance(ctx["brand_name"], str)
        assert len(ctx["brand_name"]) > 0


# ---------------------------------------------------------------------------
# 4. Configuration -- app.config wins, missing credentials are reported
# ---------------------------------------------------------------------------

def test_missing_cloudinary_credentials_reported():
    """Startup logs a configuration error; uploads fail later, at call time."""
    app = _make_app(CLOUDINARY_NAME="", CLOUDINARY_API_KEY="", CLOUDINARY_API_SECRET="")
    shopdesk = ShopDesk(app)

    assert len(shopdesk.configuration_errors) == 1
    assert isinstance(shopdesk.configuration_errors[0], ConfigurationError)
    assert not shopdesk.media_client.configured


def test_cloudinary_url_fallback():
    app = _make_app(
        CLOUDINARY_NAME="", CLOUDINARY_API_KEY="", CLOUDINARY_API_SECRET="",
        CLOUDINARY_URL="cloudinary://k:s@url-cloud",
    )
    shopdesk = ShopDesk(app)

    assert shopdesk.media_client.credentials.cloud_name == "url-cloud"


def test_api_client_from_app_config(app):
    with app.app_context():
        api = StoreApiClient.from_config(token="t")

    assert api.base_url == "http://store.test"
    assert api.token == "t"


# ---------------------------------------------------------------------------
# 5. Admin auth guard -- no auth cookie, no admin data
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("path", ["/admin/products/", "/admin/products/state", "/admin/newsletter/data"])
def test_admin_routes_require_token(client, path):
    response = client.get(path)
    assert response.status_code == 401
    assert response.get_json() == {"success": False, "error": "Authentication required"}


def test_admin_page_redirects_to_login_when_configured():
    app = _make_app(LOGIN_URL="/login")
    ShopDesk(app)

    response = app.test_client().get("/admin/newsletter/", headers={"Accept": "text/html"})

    assert response.status_code == 302
    assert response.headers["Location"].startswith("/login")


# ---------------------------------------------------------------------------
# 6. Newsletter page -- rendering and JSON endpoint
# ---------------------------------------------------------------------------

def test_newsletter_page_empty_shows_placeholder(admin_client):
    with patch("requests.Session.request", return_value=_json_response(EMPTY_NEWSLETTER)) as mock_request:
        response = admin_client.get("/admin/newsletter/")

    assert response.status_code == 200
    html = response.get_data(as_text=True)
    assert html.count('colspan="2">No newsletter subscriptions found</td>') == 1
    assert 'data-row" data-id=' not in html

    kwargs = mock_request.call_args[1]
    assert kwargs["headers"]["Authorization"] == "Bearer tok-123"
    assert kwargs["params"]["page"] == "1"


def test_newsletter_data_returns_rows(admin_client):
    body = dict(EMPTY_NEWSLETTER, data=[
        {"id": 1, "email": "jane@example.com", "createdAt": "2024-03-05T10:00:00Z"},
    ])
    with patch("requests.Session.request", return_value=_json_response(body)) as mock_request:
        response = admin_client.get("/admin/newsletter/data?page=2&search=jane")

    data = response.get_json()
    assert response.status_code == 200
    assert data["success"] is True
    assert data["rows"][0]["email"] == "jane@example.com"
    assert data["rows"][0]["subscribed_on"] == "05/03/2024"
    assert mock_request.call_args[1]["params"] == {"page": "2", "limit": "10", "search": "jane"}


def test_newsletter_data_failure(admin_client):
    with patch("requests.Session.request", side_effect=requests.ConnectionError("down")):
        response = admin_client.get("/admin/newsletter/data")

    data = response.get_json()
    assert response.status_code == 502
    assert data["success"] is False
    assert data["messages"] == [{"category": "error", "message": "Failed to fetch newsletters"}]


def test_newsletter_data_cors(admin_client):
    with patch("requests.Session.request", return_value=_json_response(EMPTY_NEWSLETTER)):
        response = admin_client.get(
            "/admin/newsletter/data", headers={"Origin": "http://localhost:3000"}
        )

    assert response.headers.get("Access-Control-Allow-Origin") == "http://localhost:3000"


# ---------------------------------------------------------------------------
# 7. Product workflow over HTTP -- open, fill, pick, upload, submit
# ---------------------------------------------------------------------------

def test_product_create_flow(admin_client, fake_store, app):
    assert admin_client.post("/admin/products/open", json={}).status_code == 200

    response = admin_client.post("/admin/products/field", json={"field": "name", "value": "Lamp"})
    assert response.get_json()["workflow"]["draft"]["name"] == "Lamp"
    admin_client.post("/admin/products/field", json={"field": "category", "value": "Lighting"})

    # submitting before any image is uploaded makes no store call
    response = admin_client.post("/admin/products/submit", json={})
    assert response.status_code == 400
    fake_store.save_product.assert_not_called()

    response = admin_client.post(
        "/admin/products/select-file",
        data={"file": (io.BytesIO(b"jpeg-bytes"), "lamp.jpg")},
        content_type="multipart/form-data",
    )
    assert response.get_json()["workflow"]["preview"].startswith("data:image/jpeg;base64,")

    response = admin_client.post("/admin/products/upload")
    assert response.status_code == 200
    assert response.get_json()["upload"]["url"] == "https://res.cloudinary.com/demo/lamp.jpg"
    assert app.extensions["shopdesk"].media_client.calls[0][1] == "Lighting"

    response = admin_client.post("/admin/products/submit", json={"price": "25"})
    data = response.get_json()
    assert response.status_code == 200
    assert data["refresh"] is True
    assert data["workflow"]["state"] == "closed"

    payload = fake_store.save_product.call_args[0][0]
    assert payload["price"] == 25.0
    assert payload["imageUrl"] == "https://res.cloudinary.com/demo/lamp.jpg"
    assert fake_store.save_product.call_args[1]["product_id"] is None


def test_product_edit_flow_loads_by_id(admin_client, fake_store):
    response = admin_client.post("/admin/products/open", json={"product_id": 42})
    data = response.get_json()

    assert data["workflow"]["mode"] == "edit"
    assert data["workflow"]["draft"]["name"] == "Oak Table"

    response = admin_client.post("/admin/products/submit", json={})
    assert response.status_code == 200
    assert fake_store.save_product.call_args[1]["product_id"] == 42


def test_upload_without_file_is_rejected(admin_client, fake_store):
    admin_client.post("/admin/products/open", json={})

    response = admin_client.post("/admin/products/upload")

    assert response.status_code == 400
    assert response.get_json()["messages"] == [
        {"category": "error", "message": "Please select an image first"}
    ]


def test_close_discards_draft(admin_client, fake_store):
    admin_client.post("/admin/products/open", json={})
    admin_client.post("/admin/products/field", json={"field": "name", "value": "Lamp"})

    response = admin_client.post("/admin/products/close")
    data = response.get_json()

    assert data["workflow"]["open"] is False
    assert data["workflow"]["draft"]["name"] == ""


def test_product_editor_page_renders(admin_client, fake_store):
    response = admin_client.get("/admin/products/")

    assert response.status_code == 200
    assert "Furniture" in response.get_data(as_text=True)


# ---------------------------------------------------------------------------
# 8. Workflow registry -- closed or idle editor sessions are freed
# ---------------------------------------------------------------------------

def _new_admin_client(app):
    client = app.test_client()
    client.set_cookie("auth_token", "tok-123")
    return client


def test_close_frees_workflow(app, fake_store):
    for _ in range(20):
        client = _new_admin_client(app)
        client.get("/admin/products/state")
        client.post("/admin/products/close")

    assert workflow_count() == 0


def test_successful_submit_frees_workflow(admin_client, fake_store):
    admin_client.post("/admin/products/open", json={"product_id": 42})
    assert workflow_count() == 1

    admin_client.post("/admin/products/submit", json={})

    assert workflow_count() == 0


def test_reopen_after_close_starts_fresh(admin_client, fake_store):
    admin_client.post("/admin/products/open", json={})
    admin_client.post("/admin/products/field", json={"field": "name", "value": "Lamp"})
    admin_client.post("/admin/products/close")

    data = admin_client.get("/admin/products/state").get_json()

    assert data["workflow"]["draft"]["name"] == ""
    assert workflow_count() == 1


def test_idle_workflows_expire(app, fake_store):
    app.config["WORKFLOW_IDLE_SECONDS"] = 60
    with patch("shopdesk.modules.products.routes.time") as mock_time:
        mock_time.time.return_value = 1000.0
        _new_admin_client(app).get("/admin/products/state")

        mock_time.time.return_value = 1000.0 + 120
        _new_admin_client(app).get("/admin/products/state")

    assert workflow_count() == 1


def test_registry_is_capped(app, fake_store):
    app.config["MAX_WORKFLOWS"] = 3
    with patch("shopdesk.modules.products.routes.time") as mock_time:
        for tick in range(6):
            mock_time.time.return_value = 1000.0 + tick
            _new_admin_client(app).get("/admin/products/state")

    assert workflow_count() == 3


# ---------------------------------------------------------------------------
# 9. Admin CORS -- origins come from each app's config
# ---------------------------------------------------------------------------

def test_admin_cors_origins_from_app_config():
    app = _make_app(ADMIN_CORS_ORIGINS="https://admin.example.com")
    ShopDesk(app)
    client = _new_admin_client(app)

    with patch("requests.Session.request", return_value=_json_response(EMPTY_NEWSLETTER)):
        allowed = client.get("/admin/newsletter/data", headers={"Origin": "https://admin.example.com"})
        denied = client.get("/admin/newsletter/data", headers={"Origin": "http://localhost:3000"})

    assert allowed.headers.get("Access-Control-Allow-Origin") == "https://admin.example.com"
    assert "Access-Control-Allow-Origin" not in denied.headers
