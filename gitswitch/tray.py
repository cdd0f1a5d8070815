#!/usr/bin/env python3
"""
Git Switch - System Tray Menu

Shows the global identity and every folder profile; picking a profile
copies its public key.
"""

import gi
import os
import signal
import subprocess
import sys
from typing import Optional

gi.require_version("Gtk", "3.0")
gi.require_version("AppIndicator3", "0.1")

from gi.repository import Gtk, AppIndicator3, GLib, Gio

from .errors import OperationResult
from .gtk_gui import APP_ID, build_model
from .logging_setup import init_logging
from .model import ProfileModel
from .parser import Profile
from .settings import Settings

DEFAULT_ICON = "emblem-generic"
LOADING_ICON = "view-refresh"


class TrayIcon:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.model: ProfileModel = build_model(settings)
        self.indicator: Optional[AppIndicator3.Indicator] = None
        self._notification = None
        self._file_monitor = None
        self._setup_indicator()
        self._setup_signals()
        self._setup_file_monitor()
        self.model.subscribe(self._on_model_changed)
        self.model.refresh()

    def _setup_indicator(self):
        self.indicator = AppIndicator3.Indicator.new(
            APP_ID + ".tray",
            DEFAULT_ICON,
            AppIndicator3.IndicatorCategory.APPLICATION_STATUS,
        )
        self.indicator.set_status(AppIndicator3.IndicatorStatus.ACTIVE)
        self.indicator.set_label("", "")
        self._build_menu()

    def _setup_signals(self):
        """Setup signal handlers for graceful shutdown."""
        signal.signal(signal.SIGINT, signal.SIG_DFL)
        signal.signal(signal.SIGTERM, self._on_signal)
        signal.signal(signal.SIGHUP, self._on_signal)

    def _on_signal(self, signum, frame):
        GLib.idle_add(Gtk.main_quit)

    def _setup_file_monitor(self):
        """Refresh when the global git config changes on disk (e.g. from a terminal)."""
        config_path = self.settings.global_config_path
        target_path = config_path if os.path.exists(config_path) else os.path.dirname(config_path)
        f = Gio.File.new_for_path(target_path)
        self._file_monitor = f.monitor(Gio.FileMonitorFlags.NONE, None)
        self._file_monitor.connect("changed", self._on_file_changed)

    def _on_file_changed(self, monitor, file, other_file, event_type):
        if event_type in (Gio.FileMonitorEvent.CHANGES_DONE_HINT, Gio.FileMonitorEvent.CREATED,
                          Gio.FileMonitorEvent.DELETED):
            # Debounce slightly to avoid multiple rapid updates
            GLib.timeout_add(200, self._refresh_once)

    def _refresh_once(self) -> bool:
        if not self.model.is_loading:
            self.model.refresh()
        return False

    def _build_menu(self) -> Gtk.Menu:
        menu = Gtk.Menu()

        # === Header Section: Global Identity ===
        self._identity_item = Gtk.MenuItem.new_with_label("Global Identity: Not Set")
        self._identity_item.set_sensitive(False)
        menu.append(self._identity_item)

        menu.append(Gtk.SeparatorMenuItem())

        # === Profiles Section ===
        profiles_item = Gtk.MenuItem.new_with_label("Copy SSH Key")
        self._profiles_menu = Gtk.Menu()
        profiles_item.set_submenu(self._profiles_menu)
        menu.append(profiles_item)

        menu.append(Gtk.SeparatorMenuItem())

        self._refresh_item = self._create_menu_item("Refresh", "view-refresh")
        self._refresh_item.connect("activate", self._on_refresh)
        menu.append(self._refresh_item)

        manage_item = self._create_menu_item("Open Git Switch…", "document-properties")
        manage_item.connect("activate", self._on_open_app)
        menu.append(manage_item)

        menu.append(Gtk.SeparatorMenuItem())

        quit_item = self._create_menu_item("Quit", "application-exit")
        quit_item.connect("activate", self._on_quit)
        menu.append(quit_item)

        menu.show_all()
        self.indicator.set_menu(menu)
        return menu

    def _create_menu_item(self, label: str, icon_name: str) -> Gtk.ImageMenuItem:
        item = Gtk.ImageMenuItem.new_with_mnemonic(label)
        icon = Gtk.Image.new_from_icon_name(icon_name, Gtk.IconSize.MENU)
        item.set_always_show_image(True)
        item.set_image(icon)
        return item

    def _on_model_changed(self, model: ProfileModel):
        self._refresh_item.set_sensitive(not model.is_loading)
        self.indicator.set_icon(LOADING_ICON if model.is_loading else DEFAULT_ICON)

        identity = model.identity
        self._identity_item.set_label(f"Global Identity: {identity.display_name} <{identity.display_email}>")
        if not model.is_loading:
            self._update_profiles_menu()

    def _update_profiles_menu(self):
        for item in self._profiles_menu.get_children():
            self._profiles_menu.remove(item)

        profiles = self.model.profiles
        if not profiles:
            no_profiles = Gtk.MenuItem.new_with_label("No profiles configured")
            no_profiles.set_sensitive(False)
            self._profiles_menu.append(no_profiles)
        for profile in profiles:
            item = Gtk.MenuItem.new_with_label(f"{profile.name}  ({profile.folder})")
            item.connect("activate", self._on_copy_key, profile)
            self._profiles_menu.append(item)

        self._profiles_menu.show_all()

    def _on_copy_key(self, _widget, profile: Profile):
        result = self.model.copy_key_material(profile)
        self._notify_result(result)

    def _on_refresh(self, _widget):
        self.model.refresh()

    def _on_open_app(self, _widget):
        """Open the main window in a separate process."""
        try:
            subprocess.Popen(
                [sys.executable, "-c", "from gitswitch.gtk_gui import run_app; run_app()"],
                start_new_session=True,
            )
        except OSError as e:
            self._show_notification("Error", f"Failed to open Git Switch: {e}", error=True)

    def _on_quit(self, _widget):
        self.model.shutdown()
        Gtk.main_quit()

    def _notify_result(self, result: OperationResult):
        title = "Git Switch" if result.ok else "Git Switch failed"
        self._show_notification(title, result.message, error=not result.ok)

    def _show_notification(self, title: str, message: str, error: bool = False):
        """Show a desktop notification."""
        try:
            gi.require_version("Notify", "0.7")
            from gi.repository import Notify
        except (ImportError, ValueError):
            # libnotify typelib not installed
            return

        if not Notify.is_initted():
            Notify.init(APP_ID)

        if self._notification:
            self._notification.close()

        icon_name = "dialog-error" if error else "dialog-information"
        self._notification = Notify.Notification.new(title, message, icon_name)
        self._notification.show()

    def run(self):
        Gtk.main()


def run_tray() -> None:
    """Entry point for running the tray application."""
    settings = Settings.from_env()
    init_logging(settings)
    TrayIcon(settings).run()
