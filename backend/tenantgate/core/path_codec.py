"""Path Codec - pure translation between pathnames, company slugs, page slugs and hostnames.

Invariants:
    - normalize_path output always starts with "/", never ends with "/" (except "/" itself)
    - slugify is idempotent: slugify(slugify(x)) == slugify(x)
    - A non-empty slugify output matches [a-z0-9]+(-[a-z0-9]+)*
    - extract_company_slug returns None for any reserved first segment
    - extract_page_slug(build_company_path(c, p)) == page_slug_of(p) whenever
      slug_from_company(c) is non-empty and not reserved

Design Decisions:
    - Reserved-keyword heuristic for company detection: a company whose slug equals a
      reserved keyword cannot be addressed by canonical path. Known limitation, kept as is.
    - Hostname helpers take the hostname as an argument; nothing here reads a browser
"""

import re
from dataclasses import dataclass
from collections.abc import Mapping
from urllib.parse import unquote, urlencode

from tenantgate.core.domain_types import Company, Page, PathState
from tenantgate.core.page_table import (
    PAGE_SLUGS,
    SLUG_TO_PAGE,
    RESERVED_SEGMENTS,
    VIEW_LEAD_PREFIX,
)

DEFAULT_PAGE_SLUG = "dashboard"

_WHITESPACE = re.compile(r"\s+")
_NON_SLUG = re.compile(r"[^a-z0-9-]")
_DASH_RUNS = re.compile(r"-+")
_IPV4 = re.compile(r"^\d{1,3}(\.\d{1,3}){3}$")
_LOCALHOST = "localhost"
_VIEW_LEAD = re.compile(r"^(?:view-lead|viewlead)/(\d+)$")


# ─── Pathnames ───────────────────────────────────────────────────

def normalize_path(raw: str | None) -> str:
    """Percent-decode, force a leading slash, strip trailing slashes."""
    decoded = unquote(raw or "")
    if not decoded.startswith("/"):
        decoded = "/" + decoded
    return decoded.rstrip("/") or "/"


def relative_url(path: str, query: Mapping[str, str] | None = None) -> str:
    """Path plus encoded query string; no "?" when the query is empty."""
    if not query:
        return path
    return f"{path}?{urlencode(dict(query))}"


def path_segments(path: str) -> list[str]:
    return [part for part in normalize_path(path).split("/") if part]


def extract_company_slug(path: str) -> str | None:
    """First path segment, unless it is a known page/route keyword."""
    segments = path_segments(path)
    if not segments:
        return None
    first = segments[0]
    if first.lower() in RESERVED_SEGMENTS:
        return None
    return first


def extract_page_slug(path: str) -> str:
    """Path remainder after a recognized company segment; dashboard when empty."""
    segments = path_segments(path)
    if extract_company_slug(path) is not None:
        segments = segments[1:]
    return "/".join(segments) or DEFAULT_PAGE_SLUG


def path_state(path: str) -> PathState:
    return PathState(
        company_slug=extract_company_slug(path),
        page_slug=extract_page_slug(path),
    )


# ─── Slugs ───────────────────────────────────────────────────────

def slugify(value: str | None) -> str:
    """Lowercase, hyphenate whitespace, drop anything outside [a-z0-9-], trim dashes."""
    slug = (value or "").lower()
    slug = _WHITESPACE.sub("-", slug)
    slug = _NON_SLUG.sub("", slug)
    slug = _DASH_RUNS.sub("-", slug)
    return slug.strip("-")


def slug_from_company(company: Company | None) -> str:
    """Company slug from its domain, falling back to its name. Empty when unknown."""
    if company is None:
        return ""
    return slugify(company.domain or company.name)


def page_slug_of(page: Page | str) -> str:
    """Canonical slug for a page; free-form page names are hyphenated."""
    if isinstance(page, Page):
        if page in PAGE_SLUGS:
            return PAGE_SLUGS[page]
        return slugify(page.value)
    return slugify(page)


def build_company_path(
    company: Company | None, page: Page | str, lead_id: int | None = None,
) -> str:
    """/{company-slug}/{page-slug}, or /{page-slug} when no company slug is known."""
    page_slug = page_slug_of(page)
    if page is Page.VIEW_LEAD and lead_id is not None:
        page_slug = f"{VIEW_LEAD_PREFIX}/{lead_id}"
    company_slug = slug_from_company(company)
    if not company_slug:
        return f"/{page_slug}"
    return f"/{company_slug}/{page_slug}"


# ─── Hostnames ───────────────────────────────────────────────────

def is_ip_literal(hostname: str) -> bool:
    return bool(_IPV4.match(hostname))


def _is_bare_local(host: str) -> bool:
    return host == _LOCALHOST or is_ip_literal(host)


def base_domain(hostname: str, configured: str | None = None) -> str:
    """Application base domain; company origins are {slug}.{base_domain}."""
    host = hostname.lower()
    if _is_bare_local(host):
        return host
    if host.endswith("." + _LOCALHOST):
        return _LOCALHOST
    if configured:
        return configured.lower()
    parts = host.split(".")
    if len(parts) >= 2:
        return ".".join(parts[-2:])
    return host


def current_subdomain(hostname: str, configured: str | None = None) -> str | None:
    """Company label of the current host (acme.example.com -> acme), or None."""
    host = hostname.lower()
    if host.endswith("." + _LOCALHOST):
        return host[: -len(_LOCALHOST) - 1] or None
    if _is_bare_local(host):
        return None
    base = base_domain(host, configured)
    if host == base or not host.endswith("." + base):
        return None
    return host[: -len(base) - 1]


def requires_origin_switch(
    hostname: str, company_slug: str, configured: str | None = None,
) -> bool:
    """True when the company's origin differs from the current host."""
    if not company_slug:
        return False
    return current_subdomain(hostname, configured) != company_slug


def company_origin(
    company_slug: str,
    hostname: str,
    scheme: str = "https",
    port: int | None = None,
    configured: str | None = None,
) -> str:
    """scheme://{slug}.{base}[:port] for the company's own origin."""
    host = f"{company_slug}.{base_domain(hostname, configured)}"
    port_part = f":{port}" if port and port not in (80, 443) else ""
    return f"{scheme}://{host}{port_part}"


def main_origin(
    hostname: str,
    scheme: str = "https",
    port: int | None = None,
    configured: str | None = None,
) -> str:
    port_part = f":{port}" if port and port not in (80, 443) else ""
    return f"{scheme}://{base_domain(hostname, configured)}{port_part}"


# ─── Page resolution ─────────────────────────────────────────────

@dataclass(frozen=True)
class PageMatch:
    page: Page
    lead_id: int | None = None


@dataclass(frozen=True)
class InvalidLeadId:
    """view-lead form whose id segment is missing or not numeric."""
    raw: str


@dataclass(frozen=True)
class Unresolved:
    slug: str


SlugResolution = PageMatch | InvalidLeadId | Unresolved


def resolve_page_slug(slug: str) -> SlugResolution:
    """Total mapping from a page slug (hyphen- or space-separated) to a page."""
    cleaned = _WHITESPACE.sub("-", (slug or "").strip().strip("/")).lower()
    if not cleaned:
        return PageMatch(Page.DASHBOARD)
    view_lead = _VIEW_LEAD.match(cleaned)
    if view_lead:
        return PageMatch(Page.VIEW_LEAD, int(view_lead.group(1)))
    head = cleaned.split("/", 1)[0]
    if head in (VIEW_LEAD_PREFIX, "viewlead"):
        return InvalidLeadId(cleaned)
    page = SLUG_TO_PAGE.get(cleaned)
    if page is None:
        return Unresolved(cleaned)
    return PageMatch(page)
