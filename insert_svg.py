#!/usr/bin/env python3
"""Inline one SVG into another at a marker comment.
Usage:
  python insert_svg.py -f dark_mode.svg -i halftone_inverse.svg -x 20 -y 25 -w 360 -h 480 -o out/dark_mode.svg

The marker line in the outer file is replaced by
<svg x y width height viewBox> wrapping the inner SVG's children.
"""
from __future__ import annotations
import sys, argparse, pathlib

from lxml import etree

DEFAULT_MARKER = '<!-- INSERT_SVG_HERE -->'
SVG_NS = 'http://www.w3.org/2000/svg'


class InsertError(Exception):
    pass


def build_block(inner_svg: bytes, x: str, y: str, w: str, h: str) -> str:
    try:
        root = etree.fromstring(inner_svg)
    except etree.XMLSyntaxError as e:
        raise InsertError(f'inner SVG is not valid XML: {e}') from e
    view_box = root.get('viewBox')
    if not view_box:
        raise InsertError('no viewBox on inner SVG.')
    children = [etree.tostring(child, encoding='unicode', with_tail=False) for child in root]
    if not children:
        raise InsertError('failed to extract content from inner SVG.')
    return (f'<svg x="{x}" y="{y}" width="{w}" height="{h}" viewBox="{view_box}" xmlns="{SVG_NS}">\n'
            + '\n'.join(children) + '\n</svg>\n')


def insert_svg(outer_text: str, block: str, marker: str = DEFAULT_MARKER) -> str:
    lines = outer_text.splitlines(keepends=True)
    if not any(marker in line for line in lines):
        raise InsertError(f"marker '{marker}' not found.")
    return ''.join(block if marker in line else line for line in lines)


def parse_args(argv):
    # -h is the height flag, so argparse's own help flag moves to --help
    p = argparse.ArgumentParser(description='Inline an SVG into another SVG at a marker.', add_help=False)
    p.add_argument('--help', action='help')
    p.add_argument('-f', dest='outer', required=True, help='outer SVG file (must contain marker)')
    p.add_argument('-i', dest='inner', required=True, help='inner SVG file to inline')
    p.add_argument('-x', required=True)
    p.add_argument('-y', required=True)
    p.add_argument('-w', required=True, help='width of inline SVG')
    p.add_argument('-h', dest='height', required=True, help='height of inline SVG')
    p.add_argument('-o', dest='out', required=True, help='output SVG path')
    p.add_argument('-m', dest='marker', default=DEFAULT_MARKER)
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(sys.argv[1:] if argv is None else argv)
    outer = pathlib.Path(args.outer)
    inner = pathlib.Path(args.inner)
    out = pathlib.Path(args.out)
    print(f"Embedding '{inner}' into '{outer}' -> '{out}' at ({args.x},{args.y}) size {args.w}x{args.height}")
    try:
        if not outer.exists() or not inner.exists():
            raise InsertError(f'missing input: {outer if not outer.exists() else inner}')
        block = build_block(inner.read_bytes(), args.x, args.y, args.w, args.height)
        merged = insert_svg(outer.read_text(encoding='utf-8'), block, args.marker)
    except InsertError as e:
        print(f'Error: {e}', file=sys.stderr)
        return 1
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(merged, encoding='utf-8')
    print(f"Done. Merged SVG written to '{out}'.")
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
