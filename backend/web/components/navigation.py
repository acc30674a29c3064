"""
Sidebar navigation component.

Menu entries come from the role-to-navigation resolver; this module only
renders them. All links use HTMX so in-app navigation does not reload the
page (and therefore does not re-run session restoration).
"""

from typing import List, Optional

from identity_access.domain import Identity

from .base import Component

try:
    from navigation import NavEntry, resolve_sidebar_menu
except ImportError:  # package layout
    from ..navigation import NavEntry, resolve_sidebar_menu

APP_TITLE = "Procurement"


def active_href(entries: List[NavEntry], current_path: str) -> Optional[str]:
    """Pick the single active entry using best prefix match."""
    path = current_path or "/"
    best: Optional[str] = None
    best_len = 0
    for entry in entries:
        if entry.path == path:
            return entry.path
        if path.startswith(entry.path.rstrip("/") + "/") and len(entry.path) > best_len:
            best = entry.path
            best_len = len(entry.path)
    return best


def nav_link(href: str, text: str, *, css_class: str, is_active: bool = False) -> str:
    attrs = Component.attributes(
        href=href,
        hx_get=href,
        hx_target="#main-content",
        hx_push_url="true",
        class_=Component.classes(css_class, active=is_active),
        aria_current="page" if is_active else None,
    )
    return f"<a {attrs}>{Component.escape(text)}</a>"


class Navigation(Component):
    """Collapsible sidebar with role-based menu items"""

    def __init__(self, identity: Optional[Identity] = None, current_path: str = "/", *, loading: bool = False):
        self.identity = identity
        self.current_path = current_path
        self.loading = loading

    def render(self) -> str:
        return f"""
    <button class="sidebar-toggle" data-action="sidebar-toggle" aria-label="Toggle navigation">
        <span class="sidebar-toggle-icon">&#9776;</span>
    </button>
    {self.render_aside()}
    <div class="sidebar-overlay" data-action="sidebar-close"></div>"""

    def render_aside(self, oob: bool = False) -> str:
        """Render only the <aside> element (HTMX out-of-band updates use oob=True)."""
        entries = resolve_sidebar_menu(self.identity, loading=self.loading)
        current = active_href(entries, self.current_path)
        links = [
            nav_link(e.path, e.label, css_class="sidebar-link", is_active=(e.path == current))
            for e in entries
        ]
        if self.identity is not None and not self.loading:
            links.append(self._render_logout())

        oob_attr = ' hx-swap-oob="true"' if oob else ""
        return f"""
    <aside class="sidebar" id="sidebar" aria-label="Sidebar"{oob_attr}>
        <nav class="sidebar-nav" role="navigation" aria-label="Main navigation">
            <div class="sidebar-header">
                <span class="sidebar-title">{APP_TITLE}</span>
            </div>
            <div class="sidebar-items">
                {''.join(links)}
            </div>
            {self._render_user_info()}
        </nav>
    </aside>"""

    def _render_user_info(self) -> str:
        if self.identity is None or self.loading:
            return ""
        role_text = self.identity.role_display or (self.identity.role.label if self.identity.role else "")
        return f"""
            <div class="sidebar-footer">
                <div class="user-name">{self.escape(self.identity.username)}</div>
                <div class="user-role">{self.escape(role_text)}</div>
            </div>"""

    @staticmethod
    def _render_logout() -> str:
        # Full page navigation: logout ends with a fresh login page load.
        return '<a href="/logout" class="sidebar-link sidebar-logout">Logout</a>'
