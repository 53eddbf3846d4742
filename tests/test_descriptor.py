# ==============================================================================
# Tests for the Element Descriptor
# ==============================================================================
"""
Tests for selector construction and element snapshots.
"""

from tracklens.tracker.descriptor import describe_element, element_selector
from tracklens.tracker.page import DomNode, Page


def _page() -> Page:
    return Page("https://app.example.com/")


# ==============================================================================
# Selector
# ==============================================================================


class TestElementSelector:
    """Tests for the CSS-like selector walk."""

    def test_body_and_none(self):
        page = _page()
        assert element_selector(None, page) == "body"
        assert element_selector(page.body, page) == "body"
        assert element_selector(page.document_element, page) == "body"

    def test_id_stops_the_walk(self):
        page = _page()
        main = page.body.append(DomNode("MAIN", id="content"))
        button = main.append(DomNode("BUTTON", id="submit"))
        assert element_selector(button, page) == "button#submit"

    def test_ancestor_id_prefix(self):
        page = _page()
        main = page.body.append(DomNode("MAIN", id="content"))
        link = main.append(DomNode("A", class_name="nav-link active extra"))
        assert element_selector(link, page) == "main#content > a.nav-link.active"

    def test_nth_child_for_same_tag_siblings(self):
        page = _page()
        ul = page.body.append(DomNode("UL", class_name="menu"))
        ul.append(DomNode("LI"))
        second = ul.append(DomNode("LI"))
        assert element_selector(second, page) == "ul.menu > li:nth-child(2)"

    def test_no_nth_child_for_unique_tag(self):
        page = _page()
        div = page.body.append(DomNode("DIV"))
        span = div.append(DomNode("SPAN"))
        div.append(DomNode("P"))
        assert element_selector(span, page) == "div > span"

    def test_nth_child_counts_all_children(self):
        page = _page()
        row = page.body.append(DomNode("DIV", class_name="row"))
        row.append(DomNode("SPAN"))
        row.append(DomNode("BUTTON"))
        target = row.append(DomNode("BUTTON"))
        assert element_selector(target, page) == "div.row > button:nth-child(3)"


# ==============================================================================
# Snapshot
# ==============================================================================


class TestDescribeElement:
    """Tests for the element metadata snapshot."""

    def test_none(self):
        assert describe_element(None, _page()) is None

    def test_fields(self):
        page = _page()
        node = page.body.append(
            DomNode(
                "BUTTON",
                id="submit",
                class_name="btn primary large wide",
                text_content="  Save changes  ",
                rect=(10.4, 20.6, 100.5, 30.2),
            )
        )
        descriptor = describe_element(node, page)

        assert descriptor.tag == "button"
        assert descriptor.id == "submit"
        assert descriptor.classes == ["btn", "primary", "large"]
        assert descriptor.text == "Save changes"
        assert descriptor.selector == "button#submit"
        assert (descriptor.rect.x, descriptor.rect.y, descriptor.rect.h) == (10, 21, 30)

    def test_text_truncated(self):
        page = _page()
        node = page.body.append(DomNode("P", text_content="x" * 250))
        assert len(describe_element(node, page).text) == 100

    def test_href_from_enclosing_link(self):
        page = _page()
        link = page.body.append(DomNode("A", href="/reports"))
        icon = link.append(DomNode("SPAN"))
        assert describe_element(icon, page).href == "/reports"

    def test_empty_id_is_none(self):
        page = _page()
        node = page.body.append(DomNode("DIV"))
        descriptor = describe_element(node, page)
        assert descriptor.id is None
        assert descriptor.href is None
        assert descriptor.rect is None
