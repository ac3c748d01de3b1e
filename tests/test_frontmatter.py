from datetime import date

import pytest
import yaml

from pagewright.errors import FrontmatterSyntaxError, FrontmatterTypeError
from pagewright.frontmatter import (
    Frontmatter,
    PageKind,
    dump_frontmatter,
    parse_document,
    parse_frontmatter,
    read_document,
    split_frontmatter,
)


def test_split_without_block():
    block, body, line = split_frontmatter("# Hello\n")
    assert block is None
    assert body == "# Hello\n"
    assert line == 1


def test_read_document_records_body_and_positions():
    text = "---\ntitle: Hello\nkind: post\n---\n# Body\n"
    doc = read_document(text, "blog/post1.md")
    assert dict(doc.raw_frontmatter) == {"title": "Hello", "kind": "post"}
    assert doc.body == "# Body\n"
    assert doc.body_line == 5
    assert doc.positions["title"] == (2, 8)
    assert doc.positions["kind"] == (3, 7)


def test_empty_block_is_empty_mapping():
    doc = read_document("---\n---\nbody", "page.md")
    assert dict(doc.raw_frontmatter) == {}
    assert doc.body == "body"


def test_unknown_kind_is_type_error_at_document():
    text = "---\ntitle: First\nkind: unknown-kind\n---\nHello\n"
    doc = read_document(text, "blog/post1.md")
    with pytest.raises(FrontmatterTypeError) as excinfo:
        parse_frontmatter(doc.raw_frontmatter, doc.path, positions=doc.positions)
    error = excinfo.value
    assert error.source_path == "blog/post1.md"
    assert error.field == "kind"
    assert error.line == 3
    assert str(error).startswith("blog/post1.md:3:7")


def test_wrong_field_types():
    with pytest.raises(FrontmatterTypeError) as excinfo:
        parse_frontmatter({"title": 42}, "a.md")
    assert excinfo.value.field == "title"

    with pytest.raises(FrontmatterTypeError) as excinfo:
        parse_frontmatter({"draft": "yes"}, "a.md")
    assert excinfo.value.field == "draft"

    with pytest.raises(FrontmatterTypeError) as excinfo:
        parse_frontmatter({"tags": ["ok", 3]}, "a.md")
    assert excinfo.value.field == "tags"

    with pytest.raises(FrontmatterTypeError) as excinfo:
        parse_frontmatter({"date": "yesterday"}, "a.md")
    assert excinfo.value.field == "date"


def test_recognized_fields_are_typed():
    fm = parse_frontmatter(
        {
            "title": "Hello",
            "kind": "page",
            "date": "2024-01-15",
            "tags": "news",
            "draft": True,
        },
        "a.md",
    )
    assert fm.kind is PageKind.PAGE
    assert fm.date == date(2024, 1, 15)
    assert fm.tags == ("news",)
    assert fm.draft is True
    assert fm.template is None


def test_unknown_keys_preserved_in_extra():
    doc = read_document("---\ntitle: T\nlayout_hint: wide\nweight: 3\n---\n", "a.md")
    fm = parse_frontmatter(doc.raw_frontmatter, doc.path)
    assert dict(fm.extra) == {"layout_hint": "wide", "weight": 3}
    assert fm.as_context()["layout_hint"] == "wide"
    assert fm.as_context()["title"] == "T"


def test_malformed_yaml_is_syntax_error():
    with pytest.raises(FrontmatterSyntaxError) as excinfo:
        read_document("---\ntitle: [unclosed\n---\nbody\n", "broken.md")
    assert excinfo.value.source_path == "broken.md"
    assert excinfo.value.line is not None


def test_invalid_date_value_is_syntax_error():
    with pytest.raises(FrontmatterSyntaxError):
        read_document("---\ndate: 2024-13-45\n---\n", "bad-date.md")


def test_non_mapping_block_is_syntax_error():
    with pytest.raises(FrontmatterSyntaxError) as excinfo:
        read_document("---\n- a\n- b\n---\n", "list.md")
    assert "mapping" in excinfo.value.message


def test_round_trip_through_dict():
    fm = parse_frontmatter(
        {
            "title": "Round",
            "template": "_special.html",
            "kind": "post",
            "date": date(2024, 2, 1),
            "description": "d",
            "tags": ["a", "b"],
            "draft": True,
            "custom": {"nested": [1, 2]},
        },
        "a.md",
    )
    assert parse_frontmatter(fm.to_dict(), "a.md") == fm


def test_round_trip_through_yaml():
    fm = Frontmatter(title="Hello", kind=PageKind.POST, date=date(2024, 1, 15), tags=("x",))
    text = dump_frontmatter(fm) + "body\n"
    doc = read_document(text, "blog/hello.md")
    assert parse_frontmatter(doc.raw_frontmatter, doc.path) == fm
    assert doc.body == "body\n"
    assert yaml.safe_load(text.split("---")[1])["kind"] == "post"


def test_dump_empty_frontmatter():
    assert dump_frontmatter(Frontmatter()) == ""


def test_parse_document_locates_type_errors():
    document, fm = parse_document("---\ntitle: Ok\n---\nbody", "ok.md")
    assert fm.title == "Ok"
    assert document.body == "body"

    with pytest.raises(FrontmatterTypeError) as excinfo:
        parse_document("---\ntitle: Ok\ntags: 5\n---\n", "bad.md")
    assert excinfo.value.location == "bad.md:3:7"


def test_defaults_are_empty_read_only_mappings():
    from pagewright.frontmatter import Document

    doc = Document("a.md", {}, "")
    fm = Frontmatter()
    assert dict(doc.positions) == {}
    assert dict(fm.extra) == {}
    with pytest.raises(TypeError):
        fm.extra["x"] = 1


def test_duplicate_key_is_syntax_error():
    with pytest.raises(FrontmatterSyntaxError) as excinfo:
        read_document("---\ntitle: First\ntitle: Second\n---\n", "blog/post1.md")
    error = excinfo.value
    assert error.location == "blog/post1.md:3:1"
    assert error.field == "title"
    assert "duplicate key 'title'" in error.message


def test_merge_keys_are_not_duplicates():
    doc = read_document(
        "---\ndefaults: &d {title: X}\n<<: *d\ntitle: Y\n---\n", "merge.md"
    )
    assert doc.raw_frontmatter["title"] == "Y"
