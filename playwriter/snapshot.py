"""Enriched accessibility snapshots.

Turns Playwright's indented ARIA snapshot text into a report an agent can
read at a glance:

    url: https://example.com/
    title: Example
    scroll: 0/1200px (more below)

    [navigation]
    h "Welcome" ← in view

    actions:
      button "Submit"
      link "Docs"

    - navigation:
      - heading "Welcome" [level=1]
    ...

The raw tree is always appended verbatim; the summary above it is additive.
Depth is inferred from indentation, two spaces per level.
"""

import re
from collections import Counter
from typing import List, Optional, Pattern, Union

from .models import Action, CollapsedElement, HeadingPosition, PageFacts


INDENT_UNIT = 2
MORE_BELOW_THRESHOLD = 100
MAX_COLLAPSED = 5
MAX_ACTIONS = 8
MAX_SEARCH_LINES = 10

IN_VIEW_MARKER = " ← in view"
BELOW_MARKER = " (below)"
COLLAPSED_BULLET = "▸"

LANDMARK_RE = re.compile(
    r'^- (banner|navigation|main|contentinfo|complementary|region)(?:\s+"([^"]+)")?:'
)
HEADING_RE = re.compile(r'^- heading "([^"]+)"')
ACTION_RE = re.compile(r'^- (button|link|textbox|searchbox|combobox)(?: "([^"]+)")?')
ACTION_KEYWORDS_RE = re.compile(r"submit|continue|next|save|apply|create|sign", re.IGNORECASE)

BUTTON_BONUS = 10
KEYWORD_BONUS = 5
DEMO_BONUS = 3

HEADINGS_JS = """(vpHeight) => {
    const headings = Array.from(document.querySelectorAll("h1, h2, h3, h4, h5, h6"));
    return headings.map((h) => {
        const rect = h.getBoundingClientRect();
        return {
            text: (h.textContent || "").trim(),
            inView: rect.top >= 0 && rect.top < vpHeight,
        };
    });
}"""

COLLAPSED_JS = """() => {
    const collapsed = Array.from(document.querySelectorAll("[aria-expanded='false']"));
    return collapsed.map((el) => ({
        label: el.getAttribute("aria-label") || (el.textContent || "").trim(),
        role: el.getAttribute("role") || el.tagName.toLowerCase(),
    }));
}"""


def line_depth(line: str) -> int:
    indent = len(line) - len(line.lstrip())
    return indent // INDENT_UNIT


def limit_depth(snapshot: str, max_depth: int) -> str:
    """Keep only lines shallower than `max_depth`; blank lines are dropped."""
    kept = []
    for line in snapshot.split("\n"):
        if not line.strip():
            continue
        if line_depth(line) < max_depth:
            kept.append(line)
    return "\n".join(kept)


def scroll_summary(scroll_y: float, doc_height: float, viewport_height: float) -> str:
    """'scroll: Y/MAXpx', with '(more below)' when over 100px remain. Empty if nothing scrolls."""
    if doc_height <= viewport_height:
        return ""
    scroll_max = doc_height - viewport_height
    has_more = scroll_y < scroll_max - MORE_BELOW_THRESHOLD
    suffix = " (more below)" if has_more else ""
    return f"scroll: {round(scroll_y)}/{round(scroll_max)}px{suffix}"


def _format_landmark(landmark: str, content: List[str]) -> str:
    if not content:
        return landmark
    return "\n".join([landmark, *content])


def _view_marker(text: str, headings: List[HeadingPosition]) -> str:
    for heading in headings:
        if heading.text == text:
            return IN_VIEW_MARKER if heading.in_view else BELOW_MARKER
    return ""


def build_region_map(aria_snapshot: str, headings: List[HeadingPosition],
                     collapsed: List[CollapsedElement]) -> str:
    """Landmarks at depth 0 with the headings under them, then collapsed widgets."""
    regions: List[str] = []
    current: Optional[str] = None
    content: List[str] = []

    for line in aria_snapshot.split("\n"):
        trimmed = line.strip()
        if not trimmed:
            continue
        depth = line_depth(line)

        landmark = LANDMARK_RE.match(trimmed)
        if landmark and depth == 0:
            if current:
                regions.append(_format_landmark(current, content))
            role, label = landmark.group(1), landmark.group(2)
            current = f'[{role}] "{label}"' if label else f"[{role}]"
            content = []
            continue

        if current:
            heading = HEADING_RE.match(trimmed)
            if heading:
                text = heading.group(1)
                indent = " " * (INDENT_UNIT * max(depth - 1, 0))
                content.append(f'{indent}h "{text}"{_view_marker(text, headings)}')

    if current:
        regions.append(_format_landmark(current, content))

    if collapsed:
        entries = "\n".join(
            f'{COLLAPSED_BULLET} {el.role} "{el.label}" (collapsed)'
            for el in collapsed[:MAX_COLLAPSED]
        )
        regions.append(f"\n{entries}")

    return "\n".join(regions)


def score_action(role: str, name: str) -> int:
    priority = 0
    if role == "button":
        priority += BUTTON_BONUS
    if ACTION_KEYWORDS_RE.search(name):
        priority += KEYWORD_BONUS
    if "demo" in name.lower():
        priority += DEMO_BONUS
    return priority


def rank_actions(aria_snapshot: str) -> List[Action]:
    """Top interactive elements, highest score first; ties keep document order."""
    actions = []
    for line in aria_snapshot.split("\n"):
        trimmed = line.strip()
        if not trimmed:
            continue
        match = ACTION_RE.match(trimmed)
        if match:
            role, name = match.group(1), match.group(2) or ""
            actions.append(Action(role=role, name=name, priority=score_action(role, name)))

    actions.sort(key=lambda a: a.priority, reverse=True)
    return actions[:MAX_ACTIONS]


def build_action_deck(aria_snapshot: str) -> str:
    """Render the ranked actions; repeated role+name pairs get a [n] occurrence index."""
    top = rank_actions(aria_snapshot)
    counts = Counter(action.key for action in top)
    next_index: Counter = Counter()

    lines = []
    for action in top:
        name = f' "{action.name}"' if action.name else ""
        if counts[action.key] > 1:
            idx = next_index[action.key]
            next_index[action.key] += 1
            lines.append(f"  [{idx}] {action.role}{name}")
        else:
            lines.append(f"  {action.role}{name}")
    return "\n".join(lines)


def render_snapshot(facts: PageFacts, max_depth: Optional[int] = None) -> str:
    """Assemble the report. `max_depth` trims only the appended raw tree."""
    region_map = build_region_map(facts.aria_snapshot, facts.headings, facts.collapsed)
    action_deck = build_action_deck(facts.aria_snapshot)
    scroll = scroll_summary(facts.scroll_y, facts.doc_height, facts.viewport_height)

    out = f"url: {facts.url}\ntitle: {facts.title}\n"
    if scroll:
        out += f"{scroll}\n"
    out += f"\n{region_map}\n"
    if action_deck:
        out += f"\nactions:\n{action_deck}\n"
    if max_depth is not None:
        raw = limit_depth(facts.aria_snapshot, max_depth)
    else:
        raw = facts.aria_snapshot
    out += f"\n{raw}"
    return out


def collect_page_facts(page) -> PageFacts:
    """Read everything the report needs from a live page."""
    url = page.url
    title = page.title()
    scroll_y = page.evaluate("() => window.scrollY")
    doc_height = page.evaluate("() => document.documentElement.scrollHeight")
    viewport_height = page.evaluate("() => window.innerHeight")
    aria_snapshot = page.locator("body").aria_snapshot()
    headings = page.evaluate(HEADINGS_JS, viewport_height)
    collapsed = page.evaluate(COLLAPSED_JS)
    return PageFacts(
        url=url,
        title=title,
        scroll_y=scroll_y,
        doc_height=doc_height,
        viewport_height=viewport_height,
        aria_snapshot=aria_snapshot,
        headings=[HeadingPosition(text=h["text"], in_view=h["inView"]) for h in headings],
        collapsed=[CollapsedElement(role=c["role"], label=c["label"]) for c in collapsed],
    )


def build_snapshot(page, max_depth: Optional[int] = None) -> str:
    return render_snapshot(collect_page_facts(page), max_depth)


def filter_snapshot(snapshot: str, search: Union[str, Pattern, None]) -> str:
    """Lines matching `search` (case-insensitive when given as a string), first 10 only."""
    if not search:
        return snapshot
    pattern = re.compile(search, re.IGNORECASE) if isinstance(search, str) else search
    matches = [line for line in snapshot.split("\n") if pattern.search(line)]
    return "\n".join(matches[:MAX_SEARCH_LINES])
