"""Browsable index page for directories without an index.html."""
import os
from html import escape
from urllib.parse import quote

PAGE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>listing directory {title}</title>
</head>
<body>
<h1>{title}</h1>
<ul>
{items}
</ul>
</body>
</html>
"""


def list_directory(directory: str):
    """Return (name, is_dir) pairs, directories first, each group sorted."""
    entries = []
    with os.scandir(directory) as it:
        for entry in it:
            try:
                is_dir = entry.is_dir()
            except OSError:
                is_dir = False
            entries.append((entry.name, is_dir))
    entries.sort(key=lambda e: (not e[1], e[0].lower()))
    return entries


def render_listing(directory: str, request_path: str) -> str:
    items = []
    if request_path != "/":
        items.append('<li><a href="../">..</a></li>')
    for name, is_dir in list_directory(directory):
        suffix = "/" if is_dir else ""
        items.append('<li><a href="{href}">{label}</a></li>'.format(
            href=escape(quote(name) + suffix),
            label=escape(name + suffix),
        ))
    return PAGE.format(title=escape(request_path), items="\n".join(items))
