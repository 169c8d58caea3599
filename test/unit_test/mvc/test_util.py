"""Unit tests for the shared helpers and the class loader."""

import string

import pytest

from plinth.errors import ConfigurationError
from plinth.mvc.attributes import AttributeBag
from plinth.mvc.loader import is_secure, load_class, load_file
from plinth.mvc.util import SPECIAL_CHARACTERS, create_dir, dump, gen_random_string


class TestGenRandomString:
    def test_default_length_and_alphabet(self):
        value = gen_random_string()
        assert len(value) == 40
        assert set(value) <= set(string.ascii_lowercase + string.digits)

    def test_case_sensitive_and_special(self):
        value = gen_random_string(500, special=True, case_sensitive=True)
        allowed = set(string.ascii_letters + string.digits + SPECIAL_CHARACTERS)
        assert len(value) == 500
        assert set(value) <= allowed

    def test_values_differ(self):
        assert gen_random_string(32) != gen_random_string(32)


class TestCreateDir:
    def test_creates_nested_directories(self, tmp_path):
        target = tmp_path / "a" / "b" / "c"
        assert create_dir(target)
        assert target.is_dir()

    def test_existing_directory(self, tmp_path):
        assert create_dir(tmp_path)

    def test_path_below_a_file(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        assert not create_dir(blocker / "sub")


class TestDump:
    def test_scalar(self):
        assert dump("a < b", "Note") == '<div class="echo"><h1>Note</h1><p>a &lt; b</p></div>'

    def test_nested_mapping(self):
        html = dump({"user": {"name": "Ann"}, "tags": ["x", "y"]})
        assert "<h1>Result</h1>" in html
        assert "<li>name => Ann</li>" in html
        assert "<li>0 => x</li>" in html

    def test_list(self):
        assert "<li>1 => b</li>" in dump(["a", "b"])


class TestIsSecure:
    @pytest.mark.parametrize("name", ["/srv/app/pc/controllers/news.py", "C:\\app\\pc", "user-profile.py", "a_b.c"])
    def test_secure(self, name):
        assert is_secure(name)

    @pytest.mark.parametrize("name", ["news.py;rm", "a b", "../$HOME", "new%s.py", "café.py"])
    def test_insecure(self, name):
        assert not is_secure(name)


class TestLoader:
    def test_load_class(self, tmp_path):
        path = tmp_path / "widget.py"
        path.write_text("class WidgetController:\n    name = 'widget'\n")
        assert load_class(path, "WidgetController").name == "widget"

    def test_file_is_loaded_once(self, tmp_path):
        path = tmp_path / "counter.py"
        path.write_text("VALUE = object()\n")
        assert load_file(path) is load_file(path)

    def test_missing_class(self, tmp_path):
        path = tmp_path / "empty.py"
        path.write_text("NAME = 'x'\n")
        with pytest.raises(ConfigurationError):
            load_class(path, "NAME")

    def test_import_error_propagates(self, tmp_path):
        path = tmp_path / "broken.py"
        path.write_text("raise RuntimeError('cannot import')\n")
        with pytest.raises(RuntimeError):
            load_file(path)


class TestAttributeBag:
    def test_unknown_attribute_is_none(self):
        bag = AttributeBag()
        assert bag.missing is None

    def test_get_all_and_unset_all(self):
        bag = AttributeBag()
        bag.title = "News"
        bag.count = 3
        assert bag.get_all() == {"title": "News", "count": 3}
        assert "title" in bag
        del bag.count
        assert bag.get_all() == {"title": "News"}
        bag.unset_all()
        assert bag.get_all() == {}
