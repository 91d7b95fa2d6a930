"""Rewrite the stat fields of the profile card SVGs."""

from __future__ import annotations
from typing import Dict, List, Tuple

from lxml import etree

# (element id, target width); repo_data is resolved against contrib_data at write time
JUSTIFY_WIDTHS: List[Tuple[str, int]] = [
    ('age_data', 49),
    ('commit_data', 22),
    ('star_data', 14),
    ('repo_data', 7),
    ('contrib_data', 0),
    ('follower_data', 10),
    ('loc_data', 9),
    ('loc_add', 0),
    ('loc_del', 7),
]

SHORT_DOTS = {0: '', 1: ' ', 2: '. '}


def format_int(num: int) -> str:
    return f"{num:,}"


def find_by_id(tree: etree._Element, element_id: str):
    return tree.find(f".//*[@id='{element_id}']")


def dots_for(element_id: str, text: str, length: int) -> str:
    just_len = length - len(text)
    if just_len <= 2 and element_id != 'repo_data':
        return SHORT_DOTS.get(just_len, '')
    return ' ' + '.' * max(just_len, 0) + ' '


def justify_format(tree: etree._Element, element_id: str, new_text: str, length: int = 0):
    """Set the element text and pad its `<id>_dots` sibling out to length.

    A length of 0 only replaces the text.
    """
    el = find_by_id(tree, element_id)
    if el is not None:
        el.text = new_text
    if length <= 0:
        return
    dots = find_by_id(tree, f"{element_id}_dots")
    if dots is not None:
        dots.text = dots_for(element_id, new_text, length)


def apply_elements(tree: etree._Element, elements: Dict[str, str]):
    for element_id, text in elements.items():
        el = find_by_id(tree, element_id)
        if el is not None:
            el.text = text
    for element_id, length in JUSTIFY_WIDTHS:
        if element_id not in elements:
            continue
        if element_id == 'repo_data':
            length -= len(elements.get('contrib_data', ''))
        justify_format(tree, element_id, elements[element_id], length)


def svg_overwrite(filename: str, elements: Dict[str, str]):
    tree = etree.parse(filename)
    apply_elements(tree.getroot(), elements)
    tree.write(filename, encoding='utf-8', xml_declaration=True)
