"""Per-connection UI preferences backed by browser localStorage."""

from collections.abc import Awaitable, Callable
from typing import Any

from gitactdash.local_storage import LocalStorageService
from gitactdash.logging_config import component_operation, get_ws_logger
from gitactdash.models import Preferences, Theme
from gitactdash.result import Result
from gitactdash.ui_state import SidebarState, ThemeState

log = get_ws_logger()

PREFERENCES_KEY = "gitactdash-preferences"

Send = Callable[[dict[str, Any]], Awaitable[None]]


class PreferencesSession:
    """Sidebar and theme state of one browser tab.

    State changes made through ``handle`` are written back to localStorage
    and pushed to the page as a ``preferences`` message.
    """

    def __init__(self, storage: LocalStorageService, send: Send) -> None:
        self.sidebar = SidebarState()
        self.theme = ThemeState()
        self._storage = storage
        self._send = send
        self._dirty = False
        self.sidebar.subscribe(self._mark_dirty)
        self.theme.subscribe(self._mark_dirty)

    def _mark_dirty(self) -> None:
        self._dirty = True

    @property
    def preferences(self) -> Preferences:
        return Preferences(theme=self.theme.theme, sidebar_collapsed=self.sidebar.is_collapsed)

    async def load(self) -> Result[Preferences | None]:
        """Adopt the stored preferences, keeping defaults when none can be read."""
        with component_operation("PreferencesSession", "load"):
            stored = await self._storage.get_json(PREFERENCES_KEY, Preferences)
            stored.on_success(self._initialize).on_failure(
                lambda message: log.warning("preferences_load_failed", error=message)
            )
            self._dirty = False
            await self.push()
            return stored

    def _initialize(self, stored: Preferences | None) -> None:
        stored = stored or Preferences()
        self.sidebar.initialize_from_client(stored.sidebar_collapsed)
        self.theme.initialize_from_client(stored.theme)

    async def save(self) -> Result[None]:
        result = await self._storage.set_json(PREFERENCES_KEY, self.preferences)
        self._dirty = False
        if result.is_failure:
            await self._send({"type": "error", "message": result.message})
        return result

    async def push(self) -> None:
        await self._send({"type": "preferences", **self.preferences.model_dump(mode="json", by_alias=True)})

    async def reset(self) -> Result[None]:
        """Forget stored preferences and return to the defaults."""
        result = await self._storage.remove_item(PREFERENCES_KEY)
        self.sidebar.set_collapsed(False)
        self.theme.set_theme(Theme.LIGHT)
        self._dirty = False
        await self.push()
        return result

    async def handle(self, message: dict[str, Any]) -> None:
        """Apply one client command."""
        with component_operation("PreferencesSession", "handle"):
            match message.get("type"):
                case "toggle_sidebar":
                    self.sidebar.toggle()
                case "set_sidebar":
                    self.sidebar.set_collapsed(bool(message.get("collapsed")))
                case "toggle_theme":
                    self.theme.toggle()
                case "set_theme":
                    try:
                        self.theme.set_theme(Theme(message.get("theme")))
                    except ValueError:
                        await self._send({"type": "error", "message": f"Unknown theme: {message.get('theme')!r}"})
                        return
                case "reset_preferences":
                    await self.reset()
                    return
                case other:
                    log.debug("unknown_command", command=other)
                    await self._send({"type": "error", "message": f"Unknown command: {other!r}"})
                    return

            if self._dirty:
                await self.save()
                await self.push()
