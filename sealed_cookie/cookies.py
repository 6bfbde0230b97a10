"""Starlette cookie transport for sealed values.

These helpers sit at the boundary between HTTP and :mod:`sealed_cookie.sealing`:
they turn ``max_age`` or ``expires`` into the absolute expiry that
:func:`~sealed_cookie.sealing.seal` expects, write the token as the cookie
value, and read it back.  A missing cookie raises
:class:`~sealed_cookie.errors.CookieNotFoundError`, and every unseal error
(``ExpiredError`` included) reaches the caller unwrapped.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Literal

from starlette.requests import Request
from starlette.responses import Response

from .compression import ZstdCodec
from .errors import CookieError, CookieNotFoundError
from .sealing import seal, unseal

logger = logging.getLogger(__name__)

MAX_COOKIE_SIZE = 4096

SameSite = Literal["lax", "strict", "none"]

_NAME = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")
_VALUE = re.compile(r"[\x21\x23-\x2B\x2D-\x3A\x3C-\x5B\x5D-\x7E]*")
_PATH = re.compile(r"[\x20-\x3A\x3C-\x7E]*")
_DOMAIN = re.compile(
    r"\.?[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*"
)
_SAMESITE = {"lax", "strict", "none"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CookieOptions:
    """Attributes of a sealed cookie.

    ``value`` must stay empty: the sealed token is the only value written.
    ``max_age`` wins over ``expires``; a ``max_age`` of zero or less deletes
    the cookie instead of sealing anything.
    """

    name: str
    value: str = ""
    path: str | None = "/"
    domain: str | None = None
    expires: datetime | None = None
    max_age: int | None = None
    secure: bool = False
    httponly: bool = False
    samesite: SameSite | None = "lax"

    @property
    def is_deletion(self) -> bool:
        return self.max_age is not None and self.max_age <= 0

    def expires_at(self, now: datetime) -> datetime | None:
        """Resolve the absolute expiry the sealed envelope should carry."""

        if self.max_age is not None and self.max_age > 0:
            return now + timedelta(seconds=self.max_age)
        return self.expires

    def validate(self, value: str) -> None:
        """Check the attributes and *value* can be written as a ``Set-Cookie`` header."""

        if not self.name or _NAME.fullmatch(self.name) is None:
            raise CookieError(f"Invalid cookie name: {self.name!r}")
        if _VALUE.fullmatch(value) is None:
            raise CookieError(f"Invalid value for cookie {self.name}")
        if self.path is not None and _PATH.fullmatch(self.path) is None:
            raise CookieError(f"Invalid path for cookie {self.name}")
        if self.domain is not None and (
            len(self.domain) > 255 or _DOMAIN.fullmatch(self.domain) is None
        ):
            raise CookieError(f"Invalid domain for cookie {self.name}: {self.domain!r}")
        if self.samesite is not None:
            if self.samesite not in _SAMESITE:
                raise CookieError(f"Invalid SameSite for cookie {self.name}: {self.samesite!r}")
            if self.samesite == "none" and not self.secure:
                raise CookieError(f"Cookie {self.name} uses SameSite=None without Secure")
        if len(self.name) + len(value) > MAX_COOKIE_SIZE:
            raise CookieError(
                f"Cookie {self.name} is {len(self.name) + len(value)} bytes, limit is {MAX_COOKIE_SIZE}"
            )


def _write_deletion(response: Response, cookie: CookieOptions) -> None:
    response.delete_cookie(
        cookie.name,
        path=cookie.path or "/",
        domain=cookie.domain,
        secure=cookie.secure,
        httponly=cookie.httponly,
        samesite=cookie.samesite,
    )


def set_cookie(
    secret: bytes,
    response: Response,
    value: Any,
    cookie: CookieOptions,
    *,
    codec: ZstdCodec | None = None,
) -> None:
    """Seal *value* and write it to *response* as *cookie*."""

    if cookie.value:
        raise CookieError("Cookie value must be empty; the sealed token is written instead")

    if cookie.is_deletion:
        _write_deletion(response, cookie)
        logger.debug("Deleted cookie", extra={"cookie": cookie.name})
        return

    token = seal(secret, value, cookie.expires_at(_utcnow()), codec=codec)
    cookie.validate(token)

    expires = cookie.expires.astimezone(timezone.utc) if cookie.expires is not None else None
    response.set_cookie(
        cookie.name,
        token,
        max_age=cookie.max_age,
        expires=expires,
        path=cookie.path or "/",
        domain=cookie.domain,
        secure=cookie.secure,
        httponly=cookie.httponly,
        samesite=cookie.samesite,
    )
    logger.debug("Set sealed cookie", extra={"cookie": cookie.name, "token_length": len(token)})


def get_cookie(
    secret: bytes,
    request: Request,
    name: str,
    value_type: Any = Any,
    *,
    codec: ZstdCodec | None = None,
) -> Any:
    """Read cookie *name* from *request* and unseal it as *value_type*."""

    raw = request.cookies.get(name)
    if raw is None:
        raise CookieNotFoundError(name)
    return unseal(secret, raw, value_type, codec=codec)


def delete_cookie(response: Response, request: Request, cookie: CookieOptions) -> None:
    """Expire *cookie* on the client if the request carried it."""

    if cookie.name in request.cookies:
        _write_deletion(response, cookie)
