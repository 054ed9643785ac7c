import os

import pytest

from sessync.core.templates import Template, TemplateSet, normalize_path

from conftest import make_template


def test_from_dict_resolves_relative_html_path(tmp_path):
    t = Template.from_dict(
        {"template_name": "A", "subject_part": "S", "text_part": "T", "html_part_file_path": "html/a.html"},
        base_dir=str(tmp_path),
    )
    assert t.html_path == str(tmp_path / "html" / "a.html")
    assert (t.name, t.subject, t.text) == ("A", "S", "T")


def test_from_dict_keeps_absolute_path(tmp_path):
    target = str(tmp_path / "a.html")
    t = Template.from_dict({"template_name": "A", "html_part_file_path": target}, base_dir="/elsewhere")
    assert t.html_path == target
    assert t.subject == "" and t.text == ""


@pytest.mark.parametrize("data", [
    {"html_part_file_path": "a.html"},
    {"template_name": "A"},
])
def test_from_dict_missing_fields(data):
    with pytest.raises(KeyError):
        Template.from_dict(data)


@pytest.mark.parametrize("data", [
    {"template_name": "", "html_part_file_path": "a.html"},
    {"template_name": "A", "html_part_file_path": ""},
    {"template_name": "A", "html_part_file_path": "a.html", "subject_part": 3},
])
def test_from_dict_rejects_bad_values(data):
    with pytest.raises(ValueError):
        Template.from_dict(data)


def test_read_html_reads_current_contents(tmp_path):
    t = make_template(tmp_path, "A", html="<p>one</p>")
    assert t.read_html() == "<p>one</p>"
    (tmp_path / "A.html").write_text("<p>two</p>", encoding="utf-8")
    assert t.read_html() == "<p>two</p>"


def test_lookup_helpers(tmp_path):
    a = make_template(tmp_path, "A", html_name="shared.html")
    b = make_template(tmp_path, "B", html_name="shared.html")
    a2 = make_template(tmp_path, "A", subject="later", html_name="a2.html")
    ts = TemplateSet([a, b, a2])

    assert ts.names() == ["A", "B", "A"]
    assert ts.get("A") is a2
    assert ts.get("missing") is None
    assert ts.html_paths() == [a.html_path, a2.html_path]
    assert ts.by_html_path(a.html_path) == [a, b]
    assert len(ts) == 3 and bool(ts)
    assert not TemplateSet()


def test_template_set_is_a_snapshot(tmp_path):
    items = [make_template(tmp_path, "A")]
    ts = TemplateSet(items)
    items.append(make_template(tmp_path, "B"))
    assert ts.names() == ["A"]
    assert ts == TemplateSet(items[:1])


def test_normalize_path(tmp_path):
    assert normalize_path("x.html", str(tmp_path)) == os.path.join(str(tmp_path), "x.html")
    assert normalize_path(str(tmp_path / "a" / ".." / "b.html")) == str(tmp_path / "b.html")
