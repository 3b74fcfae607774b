"""Data models for playwriter."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Dict, Optional, Any


SESSION_DEFAULT = "default"
SESSION_DEV_SERVER = "dev-server"
SESSION_BROWSER_AGENT = "browser-agent"


def utc_timestamp(moment: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with milliseconds and a Z suffix."""
    moment = moment or datetime.now(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


@dataclass
class SessionRecord:
    """One running (or previously run) browser instance, keyed by session name."""
    port: int
    session: str
    started_at: str = field(default_factory=utc_timestamp)
    external: bool = False

    def to_dict(self) -> Dict:
        data = {
            'port': self.port,
            'session': self.session,
            'startedAt': self.started_at,
        }
        if self.external:
            data['external'] = True
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> 'SessionRecord':
        return cls(
            port=int(data['port']),
            session=str(data['session']),
            started_at=str(data.get('startedAt', '')),
            external=bool(data.get('external', False)),
        )


@dataclass
class OriginStorage:
    """Local storage entries captured for one page origin."""
    origin: str
    local_storage: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {'origin': self.origin, 'localStorage': self.local_storage}


@dataclass
class Profile:
    """Cookies and local storage for a domain, in Playwright storage-state shape."""
    cookies: List[Dict[str, Any]] = field(default_factory=list)
    origins: List[OriginStorage] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            'cookies': self.cookies,
            'origins': [o.to_dict() for o in self.origins],
        }


@dataclass
class HeadingPosition:
    text: str
    in_view: bool


@dataclass
class CollapsedElement:
    """An element flagged aria-expanded=false."""
    role: str
    label: str


@dataclass
class Action:
    """An interactive element candidate for the action deck."""
    role: str
    name: str
    priority: int = 0

    @property
    def key(self) -> str:
        return f"{self.role}:{self.name}"


@dataclass
class PageFacts:
    """Everything the snapshot builder reads from a live page."""
    url: str
    title: str
    scroll_y: float
    doc_height: float
    viewport_height: float
    aria_snapshot: str
    headings: List[HeadingPosition] = field(default_factory=list)
    collapsed: List[CollapsedElement] = field(default_factory=list)
