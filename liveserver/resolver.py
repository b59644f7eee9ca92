"""Map a request path onto the filesystem.

Nothing is cached: every call stats the filesystem again.
"""
import os
from dataclasses import dataclass
from typing import Union

READ_METHODS = ("GET", "HEAD")
INDEX_FILE = "index.html"


@dataclass(frozen=True)
class ServeFile:
    path: str


@dataclass(frozen=True)
class RedirectToDirectory:
    location: str


@dataclass(frozen=True)
class ServeIndexHtml:
    path: str


@dataclass(frozen=True)
class ServeDirectoryListing:
    path: str


@dataclass(frozen=True)
class NotFound:
    pass


Disposition = Union[ServeFile, RedirectToDirectory, ServeIndexHtml, ServeDirectoryListing, NotFound]


def local_path(root: str, request_path: str):
    """Join a decoded request path onto root; None if it escapes root."""
    root = os.path.abspath(root)
    target = os.path.normpath(os.path.join(root, request_path.lstrip("/")))
    if os.path.commonpath([root, target]) != root:
        return None
    return target


def resolve(root: str, request_path: str, method: str = "GET") -> Disposition:
    if method not in READ_METHODS:
        return NotFound()

    target = local_path(root, request_path)
    if target is None:
        return NotFound()

    # isdir/exists report any stat failure as False, i.e. missing.
    is_dir = os.path.isdir(target)
    if not is_dir and not os.path.exists(target):
        return NotFound()

    if not is_dir:
        # A trailing slash on a file fails stat with ENOTDIR.
        if request_path.endswith("/"):
            return NotFound()
        return ServeFile(target)
    if not request_path.endswith("/"):
        return RedirectToDirectory(request_path + "/")

    index = os.path.join(target, INDEX_FILE)
    if os.path.isfile(index):
        return ServeIndexHtml(index)
    return ServeDirectoryListing(target)
