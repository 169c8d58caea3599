from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Dict, Iterable

import httpx
import pytest
from sqlalchemy import create_engine, text

# Load dotenv files early so test fixtures can read settings via os.getenv
try:  # pragma: no cover
    from dotenv import load_dotenv

    TEST_ROOT = Path(__file__).resolve().parent
    # Load test/.env first, then fallback to test/.env.example for defaults
    load_dotenv(TEST_ROOT / ".env", override=False)
    load_dotenv(TEST_ROOT / ".env.example", override=False)
except Exception:
    pass

from plinth.db.cache import MemoryCache
from plinth.mvc.application import Application
from plinth.server.core.config import Settings

NEWS_TITLES = ["First", "Second", "Third", "Fourth", "Fifth"]

LAYOUT = """\
<!DOCTYPE html>
<html><head><title>{{ title }}</title></head>
<body><div id="content">{{ view.content }}</div></body></html>
"""

PAGINATOR = """\
<p class="paginator">{{ paginator.first_record }}-{{ paginator.last_record }} of {{ paginator.record_count }} {{ paginator.item }}
{% for n in paginator.page_range() %}<a href="{{ view.url(params={'page': n}) }}">{{ n }}</a>{% endfor %}</p>
"""

ERROR_CONTROLLER = """\
from plinth.mvc.controller import Controller


class ErrorController(Controller):
    def error404_action(self):
        self.handle_exception()

    def error500_action(self):
        self.handle_exception()
"""

PC_FILES: Dict[str, str] = {
    "configs/config.ini": """\
[application]
environment = development
timezone = UTC
from_email = noreply@example.com
to_email = support@example.com

[database]
url = sqlite:///{db_path}
cache = 0

[mail]
host = mock
""",
    "controllers/index.py": """\
from plinth.mvc.controller import Controller


class IndexController(Controller):
    def index_action(self):
        self.view.title = "Home"
        self.view.total = self.view.money_format(1234.5)
""",
    "controllers/user_profile.py": """\
from plinth.mvc.controller import Controller


class UserProfileController(Controller):
    def view_all_action(self):
        self.view.title = "Profiles"
        self.view.tab = self.router.get_param("tab")
""",
    "controllers/news.py": """\
from plinth.db.paginator import Paginator
from plinth.mvc.controller import Controller
from plinth.mvc.registry import RENDER_VIEW_ONLY_KEY, RESPONSE_CODE_KEY, SEND_HEADERS_ONLY_KEY


class NewsController(Controller):
    def init(self):
        self.news = self.model("news")

    def index_action(self):
        self.view.title = "News"
        rows = self.news.select({"order_by": {"id": "asc"}})
        self.view.paginator = Paginator(rows, self.view, item="News", records_per_page=2)
        self.view.items = self.view.paginator.get_records()

    def add_action(self):
        self.news.insert({"title": self.request.get("title"), "score": 1})
        self.redirect("index", "news")

    def bounce_action(self):
        self.redirect("view-all", "user-profile", params={"tab": "recent"})

    def boom_action(self):
        raise RuntimeError("boom")

    def forward_action(self):
        self.redispatch("index", "index")

    def both_action(self):
        self.view.title = "Both"
        self.redispatch("index", "index", render_current=True)

    def again_action(self):
        self.view.title = "Again"
        self.redispatch("partial", "news", render_current=True)

    def ping_action(self):
        self.view.render(False)
        self.registry.set(SEND_HEADERS_ONLY_KEY, True)
        self.registry.set(RESPONSE_CODE_KEY, 204)

    def partial_action(self):
        self.view.render(False)
        self.registry.set(RENDER_VIEW_ONLY_KEY, True)

    def visits_action(self):
        self.session.start()
        count = self.session.get("visits") + 1 if self.session.key_exists("visits") else 1
        self.session.set("visits", count)
        self.view.visits = count
""",
    "controllers/error.py": ERROR_CONTROLLER,
    "models/news.py": """\
from plinth.db.model import DbModel


class NewsModel(DbModel):
    table = "news"
    columns = {"id": "i", "title": "s", "score": "d"}
""",
    "views/index/index.html": """\
<h1>{{ title }}</h1><p id="total">{{ total }}</p><p id="ordinal">{{ view.append_suffix(21) }}</p>
""",
    "views/user-profile/view-all.html": """\
<h1>{{ title }}</h1><p id="tab">{{ tab }}</p>
""",
    "views/news/index.html": """\
<ul>{% for item in items %}<li>{{ item.title }}</li>{% endfor %}</ul>
{{ paginator.get_script() }}
""",
    "views/news/partial.html": "<p id=\"partial\">partial</p>\n",
    "views/news/both.html": "<p id=\"both\">both</p>\n",
    "views/news/again.html": "<p id=\"again\">again</p>\n",
    "views/news/visits.html": "<p id=\"visits\">{{ visits }}</p>\n",
    "views/error/error404.html": """\
<h1>Page not found</h1>{% if exception %}<p class="exception">{{ exception }}</p>{% endif %}
""",
    "views/error/error500.html": """\
<h1>Server error</h1>{% if exception %}<p class="exception">{{ exception }}</p><p class="cause">{{ exception.__cause__ }}</p>{% endif %}
""",
    "layouts/layout.html": LAYOUT,
    "layouts/paginator.html": PAGINATOR,
}

ADMIN_FILES: Dict[str, str] = {
    "configs/config.ini": """\
[application]
environment = production
from_email = noreply@example.com
to_email = support@example.com
exception_mailing_delay = 600

[mail]
host = mock

[production]
error_reporting = ERROR
email_errors = 0
log_errors = 1
display_errors = 0
""",
    "controllers/index.py": """\
from plinth.mvc.controller import Controller


class IndexController(Controller):
    def index_action(self):
        raise ValueError("admin failure")
""",
    "controllers/error.py": ERROR_CONTROLLER,
    "views/error/error404.html": "<h1>Page not found</h1>\n",
    "views/error/error500.html": "<h1>Server error</h1>\n",
    "layouts/layout.html": LAYOUT,
}

# A module without an error controller.
MOBI_FILES: Dict[str, str] = {
    "configs/config.ini": """\
[application]
environment = production
""",
}


def _write_module(module_dir: Path, files: Dict[str, str], **values: str) -> None:
    for name, content in files.items():
        path = module_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content).replace("{db_path}", values.get("db_path", "")), encoding="utf-8")


@pytest.fixture
def sample_db(tmp_path: Path) -> Path:
    """SQLite database with a ``news`` table holding five rows."""
    db_path = tmp_path / "data" / "app.db"
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(f"sqlite:///{db_path}")
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE news (id INTEGER PRIMARY KEY AUTOINCREMENT, title TEXT, score REAL)"))
        for i, title in enumerate(NEWS_TITLES, start=1):
            conn.execute(text("INSERT INTO news (title, score) VALUES (:title, :score)"), {"title": title, "score": i})
    engine.dispose()
    return db_path


@pytest.fixture
def app_root(tmp_path: Path, sample_db: Path) -> Path:
    """Application directory with the modules ``pc`` (development), ``admin`` and ``mobi`` (production)."""
    root = tmp_path / "application"
    _write_module(root / "pc", PC_FILES, db_path=str(sample_db))
    _write_module(root / "admin", ADMIN_FILES)
    _write_module(root / "mobi", MOBI_FILES)
    (root / "_shared").mkdir()
    (root / ".hidden").mkdir()
    return root


@pytest.fixture
def plinth_settings(app_root: Path, tmp_path: Path) -> Settings:
    return Settings(
        app_root=app_root,
        default_module="pc",
        cache_dir=tmp_path / "cache",
        session_secret_key="test-secret-key",
    )


@pytest.fixture
def application(plinth_settings: Settings):
    """Front controller over the sample application; engines and log handlers are released afterwards."""
    app = Application(settings=plinth_settings)
    yield app
    app.close()


@pytest.fixture(autouse=True)
def _reset_memory_cache():
    MemoryCache._stores.clear()
    yield
    MemoryCache._stores.clear()


@pytest.fixture(autouse=True)
def _global_offline_http_guard(monkeypatch: pytest.MonkeyPatch):
    allowed_prefixes: Iterable[str] = (
        "http://mock",
        "https://mock",
        "http://localhost",
        "http://127.0.0.1",
        "http://0.0.0.0",
        "http://testserver",
        "/",  # Allow relative paths (used by ASGI transport)
    )

    orig_sync = httpx._client.Client.request
    orig_async = httpx._client.AsyncClient.request

    def _is_allowed(url_str: str) -> bool:
        return any(url_str.startswith(p) for p in allowed_prefixes)

    def offline_sync(self, method, url, *args, **kwargs):
        url_str = str(url)
        if _is_allowed(url_str):
            return orig_sync(self, method, url, *args, **kwargs)
        raise RuntimeError(f"External HTTP blocked by global offline guard: {url_str}")

    async def offline_async(self, method, url, *args, **kwargs):
        url_str = str(url)
        if _is_allowed(url_str):
            return await orig_async(self, method, url, *args, **kwargs)
        raise RuntimeError(f"External HTTP blocked by global offline guard (async): {url_str}")

    monkeypatch.setattr(httpx._client.Client, "request", offline_sync, raising=True)
    monkeypatch.setattr(httpx._client.AsyncClient, "request", offline_async, raising=True)
