"""
Layout component: assembles the full HTML document or the HTMX fragment.
"""

from typing import Optional

from identity_access.domain import Identity

from .base import Component
from .header import HeaderBar
from .navigation import APP_TITLE, Navigation


class Layout(Component):
    """Main layout component that assembles the complete page"""

    def __init__(
        self,
        title: str,
        content: str,
        identity: Optional[Identity] = None,
        show_nav: bool = True,
        current_path: str = "/",
        loading: bool = False,
    ):
        """
        Args:
            title: Page title (will be escaped)
            content: Main content HTML (pre-rendered components)
            identity: Current identity, None for anonymous pages
            show_nav: Whether to render header and sidebar
            current_path: Current URL path for active navigation highlighting
            loading: Session is still being restored; menus render empty
        """
        self.title = title
        self.content = content
        self.identity = identity
        self.show_nav = show_nav
        self.current_path = current_path
        self.loading = loading

    def render(self) -> str:
        """Render the complete HTML document including navigation and chrome."""
        nav_html = ""
        header_html = ""
        if self.show_nav:
            nav_html = Navigation(self.identity, self.current_path, loading=self.loading).render()
            header_html = HeaderBar(self.identity, self.current_path, loading=self.loading).render()

        return f"""<!DOCTYPE html>
<html lang="en">
<head>
    {self._render_head()}
</head>
<body>
    <a href="#main-content" class="skip-link">Skip to main content</a>
    {header_html}
    {nav_html}
    <div id="live-region" class="sr-only" role="status" aria-live="polite" aria-atomic="true"></div>
    <main id="main-content" class="main-content" role="main">
        {self._render_main_inner()}
    </main>
</body>
</html>"""

    def render_fragment(self) -> str:
        """Return the HTMX fragment: main content plus out-of-band chrome.

        The sidebar and the header are swapped out-of-band so the menus
        follow identity changes (profile edits) without a full page load.
        """
        main_inner = self._render_main_inner()
        if not self.show_nav:
            return main_inner
        sidebar_oob = Navigation(self.identity, self.current_path, loading=self.loading).render_aside(oob=True)
        header_oob = HeaderBar(self.identity, self.current_path, loading=self.loading).render(oob=True)
        return f"{main_inner}{sidebar_oob}{header_oob}"

    def _render_head(self) -> str:
        refresh = '<meta http-equiv="refresh" content="1">' if self.loading else ""
        return f"""
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    {refresh}
    <title>{self.escape(self.title)} - {APP_TITLE}</title>
    <link rel="stylesheet" href="/static/css/procure.css?v=1">
    <script src="/static/js/vendor/htmx.min.js"></script>
    """

    def _render_main_inner(self) -> str:
        """Inner markup of <main>; HTMX swaps replace innerHTML."""
        return f"""
        <div id="loading-indicator" class="htmx-indicator" aria-hidden="true"></div>
        {self.content}
        """


class LoadingView(Component):
    """Neutral placeholder while the session is being verified.

    The HTMX variant polls the same path until the guard lets the page
    render; the full document variant refreshes through the meta tag set by
    `Layout(loading=True)`.
    """

    def __init__(self, current_path: str):
        self.current_path = current_path

    def render(self) -> str:
        attrs = self.attributes(
            class_="loading-view",
            hx_get=self.current_path,
            hx_trigger="load delay:1s",
            hx_target="#main-content",
            aria_busy="true",
        )
        return f'<div {attrs}><p class="text-muted">Loading&hellip;</p></div>'
