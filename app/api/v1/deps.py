"""Shared request dependencies."""

from fastapi import Request


def request_origin(request: Request) -> str:
    """Origin of the calling front end; used for links in outbound mail."""
    return request.headers.get("origin", "")
