"""Unit tests for sessions, session namespaces and session cookie options."""

import json

import pytest
from starlette.middleware.sessions import Session as StarletteSession

from plinth.errors import SessionError, SessionKeyError
from plinth.mvc.request import Request
from plinth.mvc.response import Response
from plinth.mvc.session import DEFAULT_BASE_KEY, Session, SessionCookie, SessionNamespace
from plinth.mvc.session.session import ID_KEY, ID_LENGTH
from plinth.server.core.config import SessionCookieConfig


@pytest.fixture
def store():
    return {}


@pytest.fixture
def session(store):
    return Session(Request(session=store), Response(), SessionCookieConfig(name="sid"))


@pytest.fixture
def started(session):
    session.start()
    return session


class TestLifecycle:
    def test_start_creates_id_and_base_key(self, session, store):
        assert not session.is_started()
        session.start()
        assert session.is_started()
        assert len(session.get_id()) == ID_LENGTH
        assert store[ID_KEY] == session.get_id()
        assert store[DEFAULT_BASE_KEY] == {}

    def test_start_reuses_stored_id(self, store):
        store[ID_KEY] = "existing-id"
        session = Session(Request(session=store), Response())
        session.start()
        assert session.get_id() == "existing-id"

    def test_start_is_idempotent(self, started):
        session_id = started.get_id()
        started.start()
        assert started.get_id() == session_id

    @pytest.mark.parametrize(
        "operation",
        [
            lambda s: s.set("a", 1),
            lambda s: s.key_exists("a"),
            lambda s: s.get_id(),
            lambda s: s.regenerate_id(),
            lambda s: s.write_close(),
            lambda s: s.encode(),
            lambda s: s.destroy(),
        ],
    )
    def test_operations_need_a_started_session(self, session, operation):
        with pytest.raises(SessionError):
            operation(session)


class TestValues:
    def test_set_get(self, started, store):
        started.set("user", {"id": 7})
        started.set(3, "three")
        assert started.get("user") == {"id": 7}
        assert started.get("3") == "three"
        assert store[DEFAULT_BASE_KEY]["user"] == {"id": 7}

    def test_invalid_key_type(self, started):
        with pytest.raises(SessionError):
            started.set(("a",), 1)

    def test_missing_key(self, started):
        with pytest.raises(SessionKeyError):
            started.get("missing")

    def test_unset(self, started):
        started.set("a", 1)
        started.set("b", 2)
        started.unset_key("a")
        started.unset_key("never-set")
        assert not started.key_exists("a")
        started.unset_all()
        assert not started.key_exists("b")

    def test_base_key(self, session, store):
        session.set_base_key("__SHOP__")
        session.start()
        session.set("cart", [1])
        assert store["__SHOP__"] == {"cart": [1]}
        with pytest.raises(SessionError):
            session.set_base_key("__OTHER__")


class TestIdentity:
    def test_name_is_cookie_name(self, session):
        assert session.get_name() == "sid"

    def test_set_id_before_start(self, session, store):
        session.set_id("abc123")
        session.start()
        assert session.get_id() == "abc123"
        assert store[ID_KEY] == "abc123"

    @pytest.mark.parametrize("value", ["12345", 12345])
    def test_numeric_id_rejected(self, session, value):
        with pytest.raises(SessionError):
            session.set_id(value)

    def test_set_id_after_start(self, started):
        with pytest.raises(SessionError):
            started.set_id("abc")

    def test_regenerate_id(self, started, store):
        old = started.get_id()
        new = started.regenerate_id()
        assert new != old
        assert store[ID_KEY] == new

    def test_regenerate_after_headers_sent(self, store):
        response = Response()
        session = Session(Request(session=store), response)
        session.start()
        response.send_headers()
        with pytest.raises(SessionError):
            session.regenerate_id()

    def test_session_exists(self, store):
        assert not Session(Request(session=store), Response(), SessionCookieConfig(name="sid")).session_exists()
        request = Request(cookies={"sid": "signed"}, session=store)
        assert Session(request, Response(), SessionCookieConfig(name="sid")).session_exists()


class TestWriteControl:
    def test_read_only(self, started):
        started.set_read_only()
        assert not started.is_writable()
        with pytest.raises(SessionError):
            started.set("a", 1)
        started.unset_read_only()
        started.set("a", 1)

    def test_write_close(self, started):
        started.write_close()
        assert not started.is_writable()
        with pytest.raises(SessionError):
            started.set("a", 1)

    def test_expire_in_before_start(self, session):
        session.expire_in(300)
        assert session.cookie.get_option("lifetime") == 300

    def test_expire_in_after_start(self, started):
        with pytest.raises(SessionError):
            started.expire_in(300)


class TestSerialization:
    def test_encode(self, started):
        started.set("a", 1)
        assert json.loads(started.encode()) == {"a": 1}

    def test_decode_merges(self, started):
        started.set("a", 1)
        started.decode('{"b": 2}')
        assert started.get("a") == 1
        assert started.get("b") == 2

    @pytest.mark.parametrize("data", ["not json", "[1, 2]"])
    def test_decode_invalid(self, started, data):
        with pytest.raises(SessionError):
            started.decode(data)


class TestDestroy:
    def test_destroy_clears_and_expires_cookie(self, store):
        response = Response()
        session = Session(Request(session=store), response, SessionCookieConfig(name="sid", path="/shop"))
        session.start()
        session.set("a", 1)
        session.destroy()

        assert store == {}
        assert not session.is_started()
        cookie = response.cookies[-1]
        assert cookie["key"] == "sid"
        assert cookie["max_age"] == 0
        assert cookie["path"] == "/shop"

    def test_destroy_after_headers_sent(self, store):
        response = Response()
        session = Session(Request(session=store), response)
        session.start()
        response.send_headers()
        with pytest.raises(SessionError):
            session.destroy()


class TestSessionCookie:
    def test_options_from_config(self, session):
        options = session.cookie.get_options()
        assert options == {"lifetime": 0, "path": "/", "domain": None, "secure": False, "httponly": True}

    def test_set_options(self, session):
        session.cookie.set_options({"lifetime": "60", "secure": 1, "domain": "example.com"})
        assert session.cookie.get_option("lifetime") == 60
        assert session.cookie.get_option("secure") is True
        assert session.cookie.get_option("domain") == "example.com"

    def test_invalid_key(self, session):
        with pytest.raises(SessionError):
            session.cookie.get_option("samesite")
        with pytest.raises(SessionError):
            session.cookie.set_option("samesite", "lax")

    def test_options_must_be_a_mapping(self, session):
        with pytest.raises(SessionError):
            session.cookie.set_options([("path", "/")])

    def test_cookie_defaults_without_config(self, session):
        assert SessionCookie(session).get_option("path") == "/"


class TestSessionNamespace:
    def test_attribute_access(self, session, store):
        cart = SessionNamespace(session, "cart")
        assert session.is_started()
        cart.items = [1, 2]
        assert cart.items == [1, 2]
        assert "items" in cart
        assert store[DEFAULT_BASE_KEY]["cart"] == {"items": [1, 2]}

    def test_missing_attribute(self, session):
        cart = SessionNamespace(session, "cart")
        with pytest.raises(SessionKeyError):
            cart.total
        assert getattr(cart, "total", None) is None

    def test_existing_values_are_kept(self, started):
        started.set("cart", {"items": [3]})
        assert SessionNamespace(started, "cart").items == [3]

    def test_delete_attribute(self, session):
        cart = SessionNamespace(session, "cart")
        cart.items = [1]
        del cart.items
        assert "items" not in cart

    def test_read_only(self, session):
        cart = SessionNamespace(session, "cart")
        cart.set_read_only()
        assert not cart.is_writable()
        with pytest.raises(SessionError):
            cart.items = []
        cart.unset_read_only()
        cart.items = []

    def test_session_read_only_applies(self, session):
        cart = SessionNamespace(session, "cart")
        session.set_read_only()
        assert not cart.is_writable()

    def test_rename(self, session):
        cart = SessionNamespace(session, "cart")
        cart.items = [1]
        cart.set_name("basket")
        assert cart.get_name() == "basket"
        assert not session.key_exists("cart")
        assert session.get("basket") == {"items": [1]}

    def test_destroy(self, session):
        cart = SessionNamespace(session)
        assert cart.get_name() == "app"
        cart.destroy()
        assert not session.key_exists("app")


class TestChangeTracking:
    """Changes inside the base key must reach the middleware's session cookie."""

    @pytest.fixture
    def tracked(self):
        store = StarletteSession({ID_KEY: "abc", DEFAULT_BASE_KEY: {"visits": 1, "tab": "recent"}})
        session = Session(Request(session=store), Response())
        session.start()
        assert not store.modified
        return session, store

    def test_set_marks_modified(self, tracked):
        session, store = tracked
        session.set("visits", 2)
        assert store.modified
        assert store[DEFAULT_BASE_KEY]["visits"] == 2

    @pytest.mark.parametrize(
        "change",
        [
            lambda s: s.unset_key("tab"),
            lambda s: s.unset_all(),
            lambda s: s.decode('{"theme": "dark"}'),
        ],
    )
    def test_other_changes_mark_modified(self, tracked, change):
        session, store = tracked
        change(session)
        assert store.modified

    def test_reads_do_not_mark_modified(self, tracked):
        session, store = tracked
        assert session.get("visits") == 1
        assert session.key_exists("tab")
        session.encode()
        assert not store.modified

    def test_namespace_changes_mark_modified(self):
        store = StarletteSession({ID_KEY: "abc", DEFAULT_BASE_KEY: {"cart": {"items": [1]}}})
        session = Session(Request(session=store), Response())
        cart = SessionNamespace(session, "cart")
        assert not store.modified

        cart.items = [1, 2]
        assert store.modified
        assert store[DEFAULT_BASE_KEY]["cart"] == {"items": [1, 2]}

        store.modified = False
        del cart.items
        assert store.modified
