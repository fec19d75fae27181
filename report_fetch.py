#!/usr/bin/env python3
"""Retrieve report CSV files from a SharePoint-style document library.

A file is addressed by (library, folder, file name). The address is turned
into a server-relative locator and substituted into several REST request
forms, which are tried one after another until one answers with a success
status. Every failed attempt is recorded so that the final error says which
endpoint variants were tried and what each one answered.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Protocol
from urllib.parse import quote, unquote, urlsplit

import requests

from report_parse import EmptyInputError, ParsedTable, ReportError, parse_csv

DEFAULT_LIBRARY = "Shared Documents"
DEFAULT_TIMEOUT_S = 30.0
BODY_SNIPPET_LIMIT = 2000
CSV_SUFFIX = ".csv"

FILE_ATTEMPT_ORDER = ["path-encoded", "path-raw", "alias-encoded", "alias-raw", "download-sourceurl"]
LINK_ATTEMPT_ORDER = ["alias-encoded", "alias-raw", "path-encoded", "path-raw", "download-sourceurl"]

_REQUEST_FORMS = {
    "path-encoded": "{site}/_api/web/GetFileByServerRelativePath(decodedurl='{encoded}')/$value",
    "path-raw": "{site}/_api/web/GetFileByServerRelativePath(decodedurl='{raw}')/$value",
    "alias-encoded": "{site}/_api/web/GetFileByServerRelativeUrl(@v)/$value?@v='{encoded}'",
    "alias-raw": "{site}/_api/web/GetFileByServerRelativeUrl(@v)/$value?@v='{raw}'",
    "download-sourceurl": "{site}/_layouts/15/download.aspx?SourceUrl={encoded}",
}
_FOLDER_FORM = "{site}/_api/web/GetFolderByServerRelativePath(decodedurl='{encoded}')/Files?$select=Name"

# Characters encodeURIComponent leaves alone.
_URI_COMPONENT_SAFE = "-_.!~*'()"


# ------------------------------- Errors -------------------------------------

class FetchError(ReportError):
    """Base class for retrieval failures."""


@dataclass
class AttemptFailure:
    key: str
    url: str
    status: Optional[int] = None
    reason: str = ""
    detail: str = ""

    @property
    def is_transport_error(self) -> bool:
        return self.status is None

    def describe(self) -> str:
        if self.status is None:
            return f"[{self.key}] {self.detail}"
        return f"[{self.key}] HTTP {self.status} {self.reason} - {self.detail}"


class FetchExhausted(FetchError):
    """Every candidate request form failed for one locator."""

    def __init__(self, locator: str, failures: List[AttemptFailure]):
        self.locator = locator
        self.failures = list(failures)
        summary = "\n".join(f.describe() for f in self.failures)
        super().__init__(f"Failed to fetch CSV file '{locator}'. Attempts:\n{summary}")


class NotFoundError(FetchExhausted):
    """All candidates reported that the file does not exist."""


class ForbiddenError(FetchExhausted):
    """At least one candidate denied access and none found anything else."""


class UnreachableError(FetchExhausted):
    """No candidate got an HTTP answer at all."""


class MalformedError(FetchError):
    """The body was retrieved but could not be parsed."""


class ListingError(FetchError):
    """The folder enumeration request failed."""


def classify_failures(locator: str, failures: List[AttemptFailure]) -> FetchExhausted:
    statuses = [f.status for f in failures]
    if failures and all(f.is_transport_error for f in failures):
        return UnreachableError(locator, failures)
    if failures and all(s == 404 for s in statuses):
        return NotFoundError(locator, failures)
    if failures and all(s in (401, 403, 404) for s in statuses):
        return ForbiddenError(locator, failures)
    return FetchExhausted(locator, failures)


# ------------------------------ Transport ------------------------------------

class Response(Protocol):
    status_code: int
    reason: str
    text: str

    def json(self) -> Any: ...


class Transport(Protocol):
    def get(self, url: str) -> Response: ...


class RequestsTransport:
    """Plain ``requests`` session; authentication is left to the caller."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT_S, headers: Optional[Dict[str, str]] = None,
                 session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/json;odata=nometadata",
            "User-Agent": "reportkit",
        })
        if headers:
            self.session.headers.update(headers)

    def get(self, url: str) -> requests.Response:
        response = self.session.get(url, timeout=self.timeout)
        # requests assumes ISO-8859-1 for text/* without a charset.
        if "charset" not in response.headers.get("Content-Type", "").lower():
            response.encoding = "utf-8"
        return response


# ------------------------------- Caching -------------------------------------

class TableCache:
    """Parsed tables keyed by exact locator string."""

    def __init__(self) -> None:
        self._tables: Dict[str, ParsedTable] = {}

    def get(self, locator: str) -> Optional[ParsedTable]:
        if not locator:
            return None
        return self._tables.get(locator)

    def set(self, locator: str, table: ParsedTable) -> None:
        if not locator:
            return
        self._tables[locator] = table

    def clear(self) -> None:
        self._tables.clear()

    def __contains__(self, locator: object) -> bool:
        return locator in self._tables

    def __len__(self) -> int:
        return len(self._tables)


# ------------------------------ Locators -------------------------------------

def normalize_locator(path: str) -> str:
    cleaned = (path or "").replace("\\", "/")
    cleaned = re.sub(r"/{2,}", "/", cleaned)
    if not cleaned.startswith("/"):
        cleaned = "/" + cleaned
    return cleaned


def join_locator(parts: Iterable[str]) -> str:
    return normalize_locator("/".join(p for p in parts if p))


def encode_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def extract_server_relative_path(link: str, web_path: str = "") -> str:
    """Server-relative path of a sharing link such as ``/:x:/r/sites/...``."""
    try:
        raw_path = urlsplit(link).path or ""
    except ValueError:
        return link

    start = -1
    for anchor in ("/sites/", "/teams/", "/Shared%20Documents"):
        start = raw_path.find(anchor)
        if start != -1:
            break
    server_relative = unquote(raw_path[start:] if start != -1 else raw_path)
    if not server_relative.startswith("/"):
        server_relative = "/" + server_relative

    web = (web_path or "").rstrip("/")
    if web and web not in server_relative:
        server_relative = web + server_relative
    return server_relative


@dataclass
class CandidateRequest:
    key: str
    url: str


# ------------------------------- Fetcher -------------------------------------

class ResourceFetcher:
    """Fetches and caches CSV tables from one site."""

    def __init__(self, site_url: str, web_path: str = "", transport: Optional[Transport] = None,
                 cache: Optional[TableCache] = None, verbose: bool = False):
        self.site_url = (site_url or "").rstrip("/")
        self.web_path = web_path or ""
        self.transport = transport if transport is not None else RequestsTransport()
        self.cache = cache if cache is not None else TableCache()
        self.verbose = verbose
        self.last_failures: List[AttemptFailure] = []

    def _log(self, message: str) -> None:
        if self.verbose:
            print(message)

    def build_locator(self, container: str, sub_path: str, leaf: str) -> str:
        return join_locator([self.web_path, container, sub_path, leaf])

    def build_folder_locator(self, container: str, sub_path: str = "") -> str:
        return join_locator([self.web_path, container, sub_path])

    def candidate_requests(self, locator: str, order: Optional[List[str]] = None) -> List[CandidateRequest]:
        encoded = encode_component(locator)
        return [
            CandidateRequest(key, _REQUEST_FORMS[key].format(site=self.site_url, encoded=encoded, raw=locator))
            for key in (order or FILE_ATTEMPT_ORDER)
        ]

    def _try_candidates(self, locator: str, candidates: List[CandidateRequest]) -> str:
        failures: List[AttemptFailure] = []
        self.last_failures = failures
        for candidate in candidates:
            self._log(f"    Attempting [{candidate.key}]: {candidate.url}")
            try:
                response = self.transport.get(candidate.url)
            except (requests.RequestException, OSError) as exc:
                failures.append(AttemptFailure(candidate.key, candidate.url, detail=str(exc) or type(exc).__name__))
                self._log(f"    [warning] {failures[-1].describe()}")
                continue
            status = int(response.status_code)
            if 200 <= status < 300:
                return response.text
            snippet = (response.text or "")[:BODY_SNIPPET_LIMIT]
            failures.append(AttemptFailure(candidate.key, candidate.url, status, response.reason or "", snippet))
            self._log(f"    [warning] {failures[-1].describe()}")
        raise classify_failures(locator, failures)

    def fetch_text(self, container: str, sub_path: str, leaf: str) -> str:
        locator = self.build_locator(container, sub_path, leaf)
        self._log(f"  Fetching {locator}")
        return self._try_candidates(locator, self.candidate_requests(locator))

    def _parse(self, locator: str, text: str) -> ParsedTable:
        try:
            return parse_csv(text)
        except EmptyInputError as exc:
            raise MalformedError(f"Could not parse '{locator}': {exc}") from exc

    def fetch_table(self, container: str, sub_path: str, leaf: str) -> ParsedTable:
        locator = self.build_locator(container, sub_path, leaf)
        table = self._parse(locator, self.fetch_text(container, sub_path, leaf))
        self.cache.set(locator, table)
        return table

    def get_table(self, container: str, sub_path: str, leaf: str) -> ParsedTable:
        """Cached table for the address, fetching it on a miss."""
        cached = self.cache.get(self.build_locator(container, sub_path, leaf))
        if cached is not None:
            return cached
        return self.fetch_table(container, sub_path, leaf)

    def fetch_table_from_link(self, link: str) -> ParsedTable:
        locator = extract_server_relative_path(link, self.web_path)
        self._log(f"  Fetching {locator} (from link)")
        text = self._try_candidates(locator, self.candidate_requests(locator, LINK_ATTEMPT_ORDER))
        table = self._parse(locator, text)
        self.cache.set(locator, table)
        return table

    def list_entries(self, container: str, sub_path: str = "", suffix: str = CSV_SUFFIX) -> List[str]:
        locator = self.build_folder_locator(container, sub_path)
        url = _FOLDER_FORM.format(site=self.site_url, encoded=encode_component(locator))
        self._log(f"  Listing files from: {url}")
        try:
            response = self.transport.get(url)
        except (requests.RequestException, OSError) as exc:
            raise ListingError(f"Failed to list files in '{locator}': {exc}") from exc
        if not 200 <= int(response.status_code) < 300:
            raise ListingError(
                f"Failed to list files in '{locator}': HTTP {response.status_code} {response.reason}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ListingError(f"Folder listing for '{locator}' is not JSON: {exc}") from exc
        entries = (payload.get("value") or []) if isinstance(payload, dict) else None
        if not isinstance(entries, list):
            raise ListingError(f"Folder listing for '{locator}' has an unexpected listing payload")

        wanted = suffix.lower()
        names: List[str] = []
        for item in entries:
            name = item.get("Name") if isinstance(item, dict) else None
            if name and str(name).lower().endswith(wanted):
                names.append(str(name))
        return names
