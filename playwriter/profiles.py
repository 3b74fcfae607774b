"""Domain profiles: cookies and local storage saved from a live session.

Profiles are Playwright storage-state files, one per normalized domain, under
the configured profiles directory (``.playwriter/profiles/<domain>.json`` by
default). `open` passes an existing profile straight to the new browser
context; `save` always replaces the whole file, never merges.
"""

import time
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

from playwright.sync_api import Error as PlaywrightError

from .browser import attached
from .colors import check_icon, dim
from .common import config_path, debug_log, load_config, save_state
from .models import OriginStorage, Profile


LOCAL_STORAGE_JS = """() => {
    const items = [];
    for (let i = 0; i < window.localStorage.length; i++) {
        const key = window.localStorage.key(i);
        if (key) {
            items.push({ name: key, value: window.localStorage.getItem(key) || "" });
        }
    }
    return items;
}"""


def normalize_url(url: str) -> str:
    """Prefix https:// unless the URL already names http or https."""
    if not url.startswith(("http://", "https://")):
        return f"https://{url}"
    return url


def normalize_domain(url: str) -> str:
    """Hostname of `url` without scheme or a leading ``www.``."""
    try:
        domain = urlsplit(normalize_url(url)).hostname
    except ValueError:
        return url
    if not domain:
        return url
    if domain.startswith("www."):
        domain = domain[4:]
    return domain


def profile_path(domain: str) -> Path:
    return config_path("profiles_dir") / f"{domain}.json"


def has_profile(domain: str) -> bool:
    return profile_path(domain).exists()


def page_origin(url: str) -> Optional[str]:
    """scheme://host[:port], or None for pages without a network origin (about:blank)."""
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return None
    return f"{parts.scheme}://{parts.netloc}"


def strip_partition_keys(cookies: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Drop structured partitionKey fields; storage state only accepts strings there."""
    cleaned = []
    for raw in cookies:
        cookie = dict(raw)
        if isinstance(cookie.get("partitionKey"), dict):
            del cookie["partitionKey"]
        cleaned.append(cookie)
    return cleaned


def collect_cookies(context, page) -> List[Dict[str, Any]]:
    """All cookies via Network.getAllCookies.

    context.cookies() comes back empty on a connect_over_cdp browser, so this
    goes through a raw protocol session on the active page instead.
    """
    cdp = context.new_cdp_session(page)
    try:
        result = cdp.send("Network.getAllCookies")
    finally:
        cdp.detach()
    return strip_partition_keys(result.get("cookies", []))


def collect_origins(browser) -> List[OriginStorage]:
    """Non-empty local storage for each distinct origin across every open page."""
    origins: List[OriginStorage] = []
    seen = set()
    for context in browser.contexts:
        for page in context.pages:
            origin = page_origin(page.url)
            if origin is None or origin in seen:
                continue
            try:
                items = page.evaluate(LOCAL_STORAGE_JS)
            except PlaywrightError as e:
                debug_log(f"skipping {page.url}: {e}", caller="profile")
                continue
            seen.add(origin)
            if items:
                origins.append(OriginStorage(origin=origin, local_storage=items))
    return origins


def save_profile(url_or_domain: str, session: str) -> Path:
    """Capture the session's cookies and local storage as the domain's profile."""
    with attached(session) as att:
        # pending localStorage writes land asynchronously
        time.sleep(load_config()["save_settle"])

        domain = normalize_domain(url_or_domain)
        path = profile_path(domain)

        profile = Profile(
            cookies=collect_cookies(att.context, att.page),
            origins=collect_origins(att.browser),
        )
        save_state(path, profile.to_dict())
        debug_log(f"saved profile {domain} cookies={len(profile.cookies)} "
                  f"origins={len(profile.origins)}", caller="profile")

    print(f"{check_icon()} Profile saved for {domain}")
    print(dim(f"   Location: {path}"))
    print(dim(f"   Cookies: {len(profile.cookies)}, Origins: {len(profile.origins)}"))
    return path
