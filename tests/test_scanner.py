"""
Tests for file enumeration, keys and content types.
"""
import os
from pathlib import Path, PureWindowsPath

import pytest

from cellar_deploy.errors import ScanError
from cellar_deploy.models import UploadTask
from cellar_deploy.scanner import CONTENT_TYPES, FileScanner, content_type_for, resolve_content_type

from conftest import write_files


def test_scan_folder_is_recursive_and_unfiltered(tmp_path):
    """Test that every file is found, hidden files and nested folders included."""
    write_files(tmp_path, ["index.html", ".well-known/security.txt", "a/b/c/deep.js", "notes"])

    files = FileScanner().scan_folder(tmp_path)

    assert sorted(f.relative_to(tmp_path).as_posix() for f in files) == [
        ".well-known/security.txt",
        "a/b/c/deep.js",
        "index.html",
        "notes",
    ]


def test_scan_empty_folder(tmp_path):
    assert FileScanner().scan_folder(tmp_path) == []


def test_scan_missing_folder_raises(tmp_path):
    """Test that an unreadable root is fatal."""
    with pytest.raises(ScanError):
        FileScanner().scan_folder(tmp_path / "missing")


def test_scan_file_instead_of_folder_raises(tmp_path):
    target = tmp_path / "file.txt"
    target.write_text("x")

    with pytest.raises(ScanError):
        FileScanner().scan_folder(target)


def test_get_key_uses_forward_slashes(tmp_path):
    """Test that root/a/b.txt becomes a/b.txt."""
    scanner = FileScanner()

    assert scanner.get_key(tmp_path / "a" / "b.txt", tmp_path) == "a/b.txt"
    assert scanner.get_key(tmp_path / "top.html", tmp_path) == "top.html"


def test_get_key_outside_root_raises(tmp_path):
    with pytest.raises(ScanError):
        FileScanner().get_key(Path("/elsewhere/file.txt"), tmp_path / "site")


def test_windows_paths_become_posix_keys():
    """Test key derivation with Windows separators."""
    relative = PureWindowsPath(r"C:\site\assets\app.js").relative_to(PureWindowsPath(r"C:\site"))

    assert relative.as_posix() == "assets/app.js"


def test_build_tasks(site_dir):
    tasks = FileScanner().build_tasks(site_dir)

    assert sorted(t.key for t in tasks) == ["a.html", "b/c.css", "d.png"]
    assert all(t.local_path.is_file() for t in tasks)


def test_upload_task_rejects_empty_key(tmp_path):
    with pytest.raises(ValueError):
        UploadTask(local_path=tmp_path / "x", key="")


@pytest.mark.skipif(os.name == "nt", reason="backslash is a separator on Windows")
def test_backslash_in_posix_file_name_is_kept_in_key(tmp_path):
    """Test that a backslash inside a POSIX file name is an ordinary character."""
    write_files(tmp_path, ["weird\\name.txt", "sub/ok.txt"])

    tasks = FileScanner().build_tasks(tmp_path)

    assert sorted(t.key for t in tasks) == ["sub/ok.txt", "weird\\name.txt"]


@pytest.mark.parametrize("name,expected", [
    ("index.html", "text/html"),
    ("page.HTM", "text/html"),
    ("style.css", "text/css"),
    ("app.js", "application/javascript"),
    ("module.mjs", "application/javascript"),
    ("data.json", "application/json"),
    ("logo.png", "image/png"),
    ("photo.jpg", "image/jpeg"),
    ("photo.jpeg", "image/jpeg"),
    ("anim.gif", "image/gif"),
    ("icon.svg", "image/svg+xml"),
    ("pic.webp", "image/webp"),
    ("favicon.ico", "image/x-icon"),
    ("doc.pdf", "application/pdf"),
    ("robots.txt", "text/plain"),
    ("sitemap.xml", "application/xml"),
    ("font.woff", "font/woff"),
    ("font.woff2", "font/woff2"),
    ("font.ttf", "font/ttf"),
    ("font.eot", "application/vnd.ms-fontobject"),
    ("archive.unknownext", "application/octet-stream"),
    ("Makefile", "application/octet-stream"),
])
def test_content_type_table(name, expected):
    assert content_type_for(name) == expected


@pytest.mark.parametrize("extension,expected", sorted(CONTENT_TYPES.items()))
def test_resolve_content_type_uses_table_for_listed_extensions(tmp_path, extension, expected):
    """Test that the table wins over the interpreter's registry (ico, xml, js)."""
    assert resolve_content_type(tmp_path / "assets" / f"file.{extension}") == expected


def test_resolve_content_type_falls_back_to_registry(tmp_path):
    assert resolve_content_type(tmp_path / "clip.mp4") == "video/mp4"
    assert resolve_content_type(tmp_path / "blob.unknownext") == "application/octet-stream"
    assert resolve_content_type(tmp_path / "LICENSE") == "application/octet-stream"
