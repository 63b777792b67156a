"""Sidebar and theme state for one dashboard connection."""

from collections.abc import Callable

from gitactdash.models import Theme

Listener = Callable[[], None]


class _Observable:
    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()


class SidebarState(_Observable):
    """Collapsed/expanded sidebar flag."""

    def __init__(self) -> None:
        super().__init__()
        self._collapsed = False
        self._initialized = False

    @property
    def is_collapsed(self) -> bool:
        return self._collapsed

    def toggle(self) -> None:
        self._collapsed = not self._collapsed
        self._notify()

    def set_collapsed(self, collapsed: bool) -> None:
        if self._collapsed != collapsed:
            self._collapsed = collapsed
            self._notify()

    def initialize_from_client(self, collapsed: bool) -> None:
        """Adopt the value stored in the browser; only the first call counts."""
        if not self._initialized:
            self._collapsed = collapsed
            self._initialized = True
            self._notify()


class ThemeState(_Observable):
    """Light/dark theme selection."""

    def __init__(self) -> None:
        super().__init__()
        self._theme = Theme.LIGHT
        self._initialized = False

    @property
    def theme(self) -> Theme:
        return self._theme

    @property
    def is_dark(self) -> bool:
        return self._theme == Theme.DARK

    def toggle(self) -> Theme:
        self._theme = Theme.LIGHT if self.is_dark else Theme.DARK
        self._notify()
        return self._theme

    def set_theme(self, theme: Theme) -> None:
        if self._theme != theme:
            self._theme = theme
            self._notify()

    def initialize_from_client(self, theme: Theme) -> None:
        if not self._initialized:
            self._theme = theme
            self._initialized = True
            self._notify()
