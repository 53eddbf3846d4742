# ==============================================================================
# Element Descriptor
# ==============================================================================
"""
Human-readable fingerprints for interacted-with elements.

The selector is built from the element up to (not including) <body>:
- ``tag#id`` when the element has an id, and the walk stops there
- otherwise ``tag.class1.class2`` plus ``:nth-child(k)`` when the parent has
  more than one child with the same tag

Parts are joined with " > ". Selectors group interactions in reports; they
are not guaranteed unique and are never used as keys for anything else.
"""

from tracklens.core.payloads import ElementDescriptor, Rect
from tracklens.tracker.page import DomNode, Page

MAX_CLASSES = 3
SELECTOR_CLASSES = 2
MAX_TEXT = 100


def element_selector(node: DomNode | None, page: Page) -> str:
    """Build the best-effort CSS-like selector for a node."""
    if node is None or node is page.body or node is page.document_element:
        return "body"

    parts: list[str] = []
    current: DomNode | None = node
    while current is not None and current is not page.body:
        part = current.tag_name.lower()
        if current.id:
            parts.insert(0, f"{part}#{current.id}")
            break

        classes = current.classes[:SELECTOR_CLASSES]
        if classes:
            part += "." + ".".join(classes)

        parent = current.parent
        if parent is not None:
            same_tag = [c for c in parent.children if c.tag_name == current.tag_name]
            if len(same_tag) > 1:
                index = next(i for i, c in enumerate(parent.children) if c is current)
                part += f":nth-child({index + 1})"

        parts.insert(0, part)
        current = parent

    return " > ".join(parts)


def describe_element(node: DomNode | None, page: Page) -> ElementDescriptor | None:
    """
    Snapshot an element: tag, id, up to 3 classes, up to 100 chars of text,
    link target, selector and rounded bounding box.
    """
    if node is None:
        return None

    href = node.href
    if not href:
        anchor = node.closest("a")
        href = anchor.href if anchor is not None else None

    rect = None
    if node.rect is not None:
        x, y, w, h = node.rect
        rect = Rect(x=round(x), y=round(y), w=round(w), h=round(h))

    return ElementDescriptor(
        tag=node.tag_name.lower(),
        id=node.id or None,
        classes=node.classes[:MAX_CLASSES],
        text=node.text_content.strip()[:MAX_TEXT],
        href=href or None,
        selector=element_selector(node, page),
        rect=rect,
    )
