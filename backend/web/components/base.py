"""
Base class for the server-rendered UI components.

Components build HTML in plain Python. Every value that comes from the
backend or from the user passes through `escape()` or `attributes()`.
"""

from typing import Any, Optional
import html


class Component:
    """Base class for all UI components"""

    def render(self) -> str:
        raise NotImplementedError("Subclasses must implement render()")

    @staticmethod
    def escape(text: Optional[Any]) -> str:
        """Escape HTML entities; None renders as an empty string."""
        return html.escape(str(text)) if text is not None else ""

    @staticmethod
    def classes(*args: str, **conditionals: bool) -> str:
        """Build a class string with conditional classes.

        Example:
            >>> Component.classes("badge", "badge-status", muted=True, active=False)
            "badge badge-status muted"
        """
        result = [a for a in args if a]
        result.extend(key.replace("_", "-") for key, value in conditionals.items() if value)
        return " ".join(result)

    @staticmethod
    def attributes(**attrs: Any) -> str:
        """Build HTML attributes from keyword arguments.

        `class_` and `for_` map to `class` and `for`; other underscores become
        hyphens (`hx_get` -> `hx-get`). True renders a boolean attribute;
        False and None are omitted.

        Example:
            >>> Component.attributes(id="q", hx_get="/requests/all", disabled=True)
            'id="q" hx-get="/requests/all" disabled'
        """
        result = []
        for key, value in attrs.items():
            if key.endswith("_"):
                key = key[:-1]
            else:
                key = key.replace("_", "-")

            if value is True:
                result.append(key)
            elif value is not False and value is not None:
                result.append(f'{key}="{html.escape(str(value))}"')

        return " ".join(result)
