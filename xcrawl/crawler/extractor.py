"""
Link and content extraction from parsed documents.
"""

from typing import AbstractSet, List

from bs4 import BeautifulSoup

HTML_PARSER = 'lxml'


def build_document(html_content: str) -> BeautifulSoup:
    """Parse raw HTML into a queryable document tree."""
    return BeautifulSoup(html_content, HTML_PARSER)


def extract_links(document: BeautifulSoup, required_tags: AbstractSet[str]) -> List[str]:
    """
    Collect raw href values of anchors passing the containment filter.

    Args:
        document: Parsed page
        required_tags: Tag names an anchor must contain at least one of;
            empty means every anchor qualifies

    Returns:
        href values in document order, unresolved and possibly repeated
    """
    links = []
    required = list(required_tags)

    for anchor in document.find_all('a'):
        href = anchor.get('href')
        if href is None:
            continue
        if required and anchor.find(required) is None:
            continue
        links.append(href)

    return links


def extract_values(document: BeautifulSoup, record_tags: AbstractSet[str],
                   record_attr: str) -> List[str]:
    """
    Collect the recorded attribute of every element whose tag is in record_tags.

    With an empty record_attr the element's text is recorded instead.
    Elements missing the attribute contribute nothing.
    """
    if not record_tags:
        return []

    values = []
    for element in document.find_all(list(record_tags)):
        if not record_attr:
            values.append(element.get_text(strip=True))
            continue
        value = element.get(record_attr)
        if value is None:
            continue
        # Multi-valued attributes such as class come back as lists
        if isinstance(value, list):
            value = ' '.join(value)
        values.append(value)

    return values
