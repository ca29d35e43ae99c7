import html
import mimetypes
import posixpath
from pathlib import Path
from urllib.parse import quote

from fastapi import HTTPException, status
from fastapi.responses import FileResponse, HTMLResponse, Response

# Marks answers for directories, so cdn servers do not cache them as files
DIRECTORY_HEADER = "X-Cdn-Directory"


def clean_request_path(request_path: str) -> str:
    """
    Normalise a url path to an absolute one without '.' or '..' segments.
    '..' can never climb above '/'.
    """
    return posixpath.normpath("/" + request_path.lstrip("/"))


def local_path(serve_dir: Path, request_path: str) -> Path:
    """
    Map a request path to a file path inside serve_dir.
    """
    relative = clean_request_path(request_path).lstrip("/")
    return serve_dir / relative if relative else serve_dir


def file_response(path: Path) -> FileResponse:
    # Guess MIME type from file extension (html, css, png, mp4, etc.)
    mime_type, _ = mimetypes.guess_type(str(path))
    media_type = mime_type or "application/octet-stream"
    return FileResponse(path, media_type=media_type)


def directory_listing(path: Path, request_path: str) -> HTMLResponse:
    base = clean_request_path(request_path).rstrip("/") + "/"
    entries = sorted(path.iterdir(), key=lambda p: p.name)

    lines = ["<!doctype html>", "<pre>"]
    for entry in entries:
        name = entry.name + ("/" if entry.is_dir() else "")
        href = quote(base + name)
        lines.append(f'<a href="{html.escape(href)}">{html.escape(name)}</a>')
    lines.append("</pre>")
    return HTMLResponse("\n".join(lines) + "\n")


def serve_path(serve_dir: Path, request_path: str) -> Response:
    """
    Serve a file or directory below serve_dir.

    Directories are answered with their index.html if present, otherwise
    with a plain listing of their entries.
    """
    path = local_path(serve_dir, request_path)

    if path.is_dir():
        index = path / "index.html"
        if index.is_file():
            response = file_response(index)
        else:
            response = directory_listing(path, request_path)
        response.headers[DIRECTORY_HEADER] = "true"
        return response

    if not path.is_file():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Could not find {clean_request_path(request_path)}",
        )

    return file_response(path)
