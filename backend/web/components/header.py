"""
Top header bar with the header-style menu and the user menu.

Profile is reachable from the user menu, so the header-style resolver omits
it from the main entries.
"""

from typing import Optional

from identity_access.domain import Identity

from .base import Component
from .navigation import APP_TITLE, active_href, nav_link

try:
    from navigation import resolve_header_menu
except ImportError:  # package layout
    from ..navigation import resolve_header_menu


class HeaderBar(Component):
    def __init__(self, identity: Optional[Identity] = None, current_path: str = "/", *, loading: bool = False):
        self.identity = identity
        self.current_path = current_path
        self.loading = loading

    def render(self, oob: bool = False) -> str:
        entries = resolve_header_menu(self.identity, loading=self.loading)
        current = active_href(entries, self.current_path)
        links = "".join(
            nav_link(e.path, e.label, css_class="header-link", is_active=(e.path == current)) for e in entries
        )
        oob_attr = ' hx-swap-oob="true"' if oob else ""
        return f"""
    <header class="app-header" id="app-header"{oob_attr}>
        <span class="app-title">{APP_TITLE}</span>
        <nav class="header-nav" aria-label="Header navigation">{links}</nav>
        {self._render_user_menu()}
    </header>"""

    def _render_user_menu(self) -> str:
        if self.identity is None or self.loading:
            return ""
        role_text = self.identity.role_display or ""
        profile = nav_link("/profile", "Profile", css_class="user-menu-link", is_active=self.current_path == "/profile")
        return f"""
        <div class="user-menu">
            <span class="user-menu-name">{self.escape(self.identity.username)}</span>
            <span class="user-menu-role">{self.escape(role_text)}</span>
            {profile}
            <a href="/logout" class="user-menu-link">Logout</a>
        </div>"""
