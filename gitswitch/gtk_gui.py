#!/usr/bin/env python3
"""
Git Switch - Native GNOME GUI

A GTK3 window for binding folders to Git identities.
"""

import gi
import os
import sys
from typing import Optional

gi.require_version("Gtk", "3.0")
gi.require_version("Gdk", "3.0")

from gi.repository import Gtk, Gdk, GLib, Gio, Pango

from .errors import OperationResult
from .logging_setup import init_logging
from .manager import ProfileRepository
from .model import ProfileModel
from .parser import Profile
from .settings import Settings
from .storage import THEMES, read_preferences, write_preferences


APP_ID = "com.github.git-switch"

THEME_COLORS = {
    "blue": "#007aff",
    "purple": "#b052de",
    "pink": "#f04780",
    "orange": "#ff9400",
    "green": "#33c759",
    "teal": "#00bad1",
}


class GtkClipboard:
    """Clipboard backed by the GTK selection, used instead of external tools."""

    def copy(self, text: str) -> bool:
        clipboard = Gtk.Clipboard.get(Gdk.SELECTION_CLIPBOARD)
        clipboard.set_text(text, -1)
        clipboard.store()
        return True


def build_model(settings: Settings) -> ProfileModel:
    repository = ProfileRepository(settings, clipboard=GtkClipboard())
    return ProfileModel(repository, schedule=GLib.idle_add)


class ProfileRow(Gtk.ListBoxRow):
    """A list box row representing a folder binding."""

    def __init__(self, profile: Profile):
        super().__init__(activatable=True, selectable=True)

        self.profile = profile

        box = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=12, margin_start=12, margin_end=12, margin_top=8, margin_bottom=8)
        self.add(box)

        icon = Gtk.Image.new_from_icon_name("folder-symbolic", Gtk.IconSize.LARGE_TOOLBAR)
        icon.get_style_context().add_class("accent")
        box.pack_start(icon, False, False, 0)

        text_box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=2)
        box.pack_start(text_box, True, True, 0)

        name_label = Gtk.Label(label=profile.name)
        name_label.set_halign(Gtk.Align.START)
        attrs = Pango.AttrList()
        attrs.insert(Pango.attr_weight_new(Pango.Weight.BOLD))
        name_label.set_attributes(attrs)
        text_box.pack_start(name_label, False, False, 0)

        email_label = Gtk.Label(label=profile.email)
        email_label.set_halign(Gtk.Align.START)
        email_label.get_style_context().add_class(Gtk.STYLE_CLASS_DIM_LABEL)
        email_label.set_ellipsize(Pango.EllipsizeMode.END)
        text_box.pack_start(email_label, False, False, 0)

        folder_label = Gtk.Label()
        folder_label.set_markup(f"<span size='small' font_family='monospace'>{GLib.markup_escape_text(profile.folder)}</span>")
        folder_label.set_halign(Gtk.Align.START)
        folder_label.set_ellipsize(Pango.EllipsizeMode.MIDDLE)
        folder_label.get_style_context().add_class("profile-detail-label")
        text_box.pack_start(folder_label, False, False, 0)

        status = Gtk.Label()
        if profile.read_error:
            status.set_markup("<span size='small'>⚠ Config unreadable</span>")
            status.get_style_context().add_class("key-missing")
            status.set_tooltip_text(profile.read_error)
        elif profile.key_path and os.path.exists(profile.key_path):
            status.set_markup("<span size='small'>⚿ Key</span>")
            status.get_style_context().add_class("key-ok")
        else:
            status.set_markup("<span size='small'>⚿ No key</span>")
            status.get_style_context().add_class("key-missing")
        box.pack_end(status, False, False, 0)

        self.show_all()


class FormDialog(Gtk.Dialog):
    """Header-bar dialog with a two-column form; Save enabled once required fields are filled."""

    def __init__(self, parent, title: str):
        super().__init__(title=title, transient_for=parent, modal=True, use_header_bar=1)
        self.result = None
        self._required = []

        self.set_default_size(500, 180)
        self.add_button("Cancel", Gtk.ResponseType.CANCEL)
        self._save_btn = self.add_button("Save", Gtk.ResponseType.OK)
        self._save_btn.get_style_context().add_class(Gtk.STYLE_CLASS_SUGGESTED_ACTION)
        self._save_btn.set_sensitive(False)
        self.set_default_response(Gtk.ResponseType.OK)

        content = self.get_content_area()
        content.set_property("margin", 24)
        content.set_spacing(12)

        self.grid = Gtk.Grid()
        self.grid.set_column_spacing(12)
        self.grid.set_row_spacing(12)
        content.add(self.grid)
        self._row = 0

    def add_field(self, label: str, widget: Gtk.Widget) -> None:
        field_label = Gtk.Label(label=label)
        field_label.set_halign(Gtk.Align.START)
        field_label.get_style_context().add_class(Gtk.STYLE_CLASS_DIM_LABEL)
        self.grid.attach(field_label, 0, self._row, 1, 1)
        widget.set_hexpand(True)
        self.grid.attach(widget, 1, self._row, 1, 1)
        self._row += 1

    def add_entry(self, label: str, text: str = "", placeholder: str = "") -> Gtk.Entry:
        entry = Gtk.Entry()
        entry.set_text(text)
        entry.set_placeholder_text(placeholder)
        entry.set_activates_default(True)
        entry.connect("changed", self._validate_form)
        self._required.append(entry)
        self.add_field(label, entry)
        return entry

    def _validate_form(self, *args):
        self._save_btn.set_sensitive(all(e.get_text().strip() for e in self._required) and self._extra_valid())

    def _extra_valid(self) -> bool:
        return True

    def run_form(self) -> Optional[dict]:
        self.get_content_area().show_all()
        self._validate_form()
        response = self.run()
        if response == Gtk.ResponseType.OK:
            self.result = self.collect()
        self.destroy()
        return self.result

    def collect(self) -> dict:
        raise NotImplementedError


class ProfileDialog(FormDialog):
    """Dialog for adding a profile or editing its identity."""

    def __init__(self, parent, profile: Optional[Profile] = None):
        super().__init__(parent, "Edit Profile" if profile else "Add Profile")
        self.profile = profile

        self.name_entry = self.add_entry("Name", profile.name if profile else "", "Work")
        self.email_entry = self.add_entry("Email", profile.email if profile else "", "you@example.com")

        if profile:
            folder_label = Gtk.Label(label=profile.folder)
            folder_label.set_halign(Gtk.Align.START)
            folder_label.set_ellipsize(Pango.EllipsizeMode.MIDDLE)
            self.add_field("Folder", folder_label)
            self.folder_chooser = None
        else:
            self.folder_chooser = Gtk.FileChooserButton(title="Select Folder", action=Gtk.FileChooserAction.SELECT_FOLDER)
            self.folder_chooser.set_current_folder(os.path.expanduser("~"))
            self.folder_chooser.connect("selection-changed", self._validate_form)
            self.add_field("Folder", self.folder_chooser)

    def _extra_valid(self) -> bool:
        return self.folder_chooser is None or bool(self.folder_chooser.get_filename())

    def collect(self) -> dict:
        result = {
            "name": self.name_entry.get_text().strip(),
            "email": self.email_entry.get_text().strip(),
        }
        if self.folder_chooser is not None:
            result["folder"] = self.folder_chooser.get_filename()
        return result


class IdentityDialog(FormDialog):
    """Dialog for the global user.name / user.email."""

    def __init__(self, parent, name: str, email: str):
        super().__init__(parent, "Global Identity")
        self.name_entry = self.add_entry("Name", name)
        self.email_entry = self.add_entry("Email", email)

    def collect(self) -> dict:
        return {"name": self.name_entry.get_text().strip(), "email": self.email_entry.get_text().strip()}


class MainWindow(Gtk.ApplicationWindow):
    """Main application window."""

    def __init__(self, app, settings: Settings):
        super().__init__(application=app, title="Git Switch")

        self.settings = settings
        self.preferences = read_preferences(settings.preferences_path)
        self.model = build_model(settings)
        self.model.subscribe(self._on_model_changed)
        self._css_provider = Gtk.CssProvider()
        self._setup_ui()
        self._setup_keyboard_shortcuts()
        self.connect("destroy", lambda _: self.model.shutdown())
        self.model.refresh()

    def _setup_css(self):
        """Setup theme-aware CSS classes plus the accent color from preferences."""
        accent = THEME_COLORS.get(self.preferences["theme"], THEME_COLORS["blue"])
        css = f"""
        .accent {{
            color: {accent};
        }}
        .avatar {{
            background: {accent};
            color: white;
            border-radius: 9999px;
            min-width: 36px;
            min-height: 36px;
            font-weight: bold;
        }}
        .profile-detail-label {{
            color: @theme_fg_color;
            opacity: 0.55;
        }}
        .key-ok {{
            color: @success_color;
        }}
        .key-missing {{
            color: @error_color;
        }}
        .toast-bar {{
            border-radius: 9999px;
            padding: 6px 16px;
            margin: 12px;
        }}
        .toast-bar.error {{
            background: @error_color;
            color: white;
        }}
        """
        self._css_provider.load_from_data(css.encode("utf-8"))
        Gtk.StyleContext.add_provider_for_screen(
            Gdk.Screen.get_default(),
            self._css_provider,
            Gtk.STYLE_PROVIDER_PRIORITY_APPLICATION,
        )

    def _setup_ui(self):
        """Setup the user interface."""
        self._setup_css()
        self.set_default_size(720, 520)
        self.set_position(Gtk.WindowPosition.CENTER)

        header_bar = Gtk.HeaderBar()
        header_bar.set_show_close_button(True)
        header_bar.set_title("Git Switch")
        header_bar.set_subtitle("Per-folder Git identities")

        add_btn = Gtk.Button()
        add_btn.set_image(Gtk.Image.new_from_icon_name("list-add-symbolic", Gtk.IconSize.BUTTON))
        add_btn.set_tooltip_text("Add new profile (Ctrl+N)")
        add_btn.connect("clicked", self._on_add)
        header_bar.pack_start(add_btn)

        menu_btn = Gtk.MenuButton()
        menu_btn.add(Gtk.Image.new_from_icon_name("open-menu-symbolic", Gtk.IconSize.BUTTON))
        menu_btn.set_tooltip_text("Main Menu")

        identity_section = Gio.Menu()
        identity_section.append("Global Identity…", "win.global-identity")

        theme_menu = Gio.Menu()
        for theme in THEMES:
            theme_menu.append(theme.capitalize(), f"win.theme::{theme}")
        theme_section = Gio.Menu()
        theme_section.append_submenu("Accent Color", theme_menu)

        about_section = Gio.Menu()
        about_section.append("About Git Switch", "win.about")

        hamburger_menu = Gio.Menu()
        hamburger_menu.append_section(None, identity_section)
        hamburger_menu.append_section(None, theme_section)
        hamburger_menu.append_section(None, about_section)
        menu_btn.set_menu_model(hamburger_menu)
        header_bar.pack_end(menu_btn)

        self.refresh_btn = Gtk.Button()
        self.refresh_btn.set_tooltip_text("Refresh (Ctrl+R)")
        self.refresh_btn.add(Gtk.Image.new_from_icon_name("view-refresh-symbolic", Gtk.IconSize.BUTTON))
        self.refresh_btn.connect("clicked", self._on_refresh)
        header_bar.pack_end(self.refresh_btn)

        self.spinner = Gtk.Spinner()
        header_bar.pack_end(self.spinner)

        self.set_titlebar(header_bar)
        self._setup_actions()

        main_box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL)
        self.add(main_box)

        # Global identity card
        identity_box = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=12, margin=12)
        self.avatar_label = Gtk.Label(label="?")
        self.avatar_label.get_style_context().add_class("avatar")
        identity_box.pack_start(self.avatar_label, False, False, 0)

        identity_text = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=2)
        caption = Gtk.Label()
        caption.set_markup("<span size='small'>Global Identity</span>")
        caption.set_halign(Gtk.Align.START)
        caption.get_style_context().add_class(Gtk.STYLE_CLASS_DIM_LABEL)
        identity_text.pack_start(caption, False, False, 0)
        self.identity_name_label = Gtk.Label(label="Not Set")
        self.identity_name_label.set_halign(Gtk.Align.START)
        identity_text.pack_start(self.identity_name_label, False, False, 0)
        self.identity_email_label = Gtk.Label(label="-")
        self.identity_email_label.set_halign(Gtk.Align.START)
        self.identity_email_label.get_style_context().add_class(Gtk.STYLE_CLASS_DIM_LABEL)
        identity_text.pack_start(self.identity_email_label, False, False, 0)
        identity_box.pack_start(identity_text, True, True, 0)

        edit_identity_btn = Gtk.Button(label="Edit")
        edit_identity_btn.set_valign(Gtk.Align.CENTER)
        edit_identity_btn.connect("clicked", lambda _: self._on_global_identity(None, None))
        identity_box.pack_end(edit_identity_btn, False, False, 0)
        main_box.pack_start(identity_box, False, False, 0)
        main_box.pack_start(Gtk.Separator(orientation=Gtk.Orientation.HORIZONTAL), False, False, 0)

        overlay = Gtk.Overlay()
        main_box.pack_start(overlay, True, True, 0)

        scrolled = Gtk.ScrolledWindow()
        scrolled.set_property("margin", 12)
        scrolled.set_policy(Gtk.PolicyType.NEVER, Gtk.PolicyType.AUTOMATIC)
        scrolled.get_style_context().add_class("frame")
        overlay.add(scrolled)

        # Toast bar (positioned at bottom-center via overlay)
        self.status_revealer = Gtk.Revealer()
        self.status_revealer.set_transition_type(Gtk.RevealerTransitionType.CROSSFADE)
        self.status_revealer.set_halign(Gtk.Align.CENTER)
        self.status_revealer.set_valign(Gtk.Align.END)

        self.status_bar = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=8)
        self.status_bar.get_style_context().add_class("app-notification")
        self.status_bar.get_style_context().add_class("toast-bar")
        self.status_label = Gtk.Label()
        self.status_label.set_ellipsize(Pango.EllipsizeMode.END)
        self.status_bar.pack_start(self.status_label, True, True, 0)
        self.status_revealer.add(self.status_bar)
        overlay.add_overlay(self.status_revealer)

        self.list_box = Gtk.ListBox()
        self.list_box.set_selection_mode(Gtk.SelectionMode.SINGLE)
        placeholder = Gtk.Label(label="No folders bound yet. Press + to add one.", margin=48)
        placeholder.get_style_context().add_class(Gtk.STYLE_CLASS_DIM_LABEL)
        placeholder.show()
        self.list_box.set_placeholder(placeholder)
        self.list_box.connect("row-activated", self._on_row_activated)
        self.list_box.connect("button-press-event", self._on_button_press)
        scrolled.add(self.list_box)

        self.show_all()
        self.status_revealer.set_reveal_child(False)

    def _setup_actions(self):
        """Setup window actions."""
        identity_action = Gio.SimpleAction.new("global-identity", None)
        identity_action.connect("activate", self._on_global_identity)
        self.add_action(identity_action)

        theme_action = Gio.SimpleAction.new_stateful(
            "theme", GLib.VariantType.new("s"), GLib.Variant("s", self.preferences["theme"])
        )
        theme_action.connect("activate", self._on_theme)
        self.add_action(theme_action)

        about_action = Gio.SimpleAction.new("about", None)
        about_action.connect("activate", self._on_about)
        self.add_action(about_action)

    def _setup_keyboard_shortcuts(self):
        """Setup keyboard shortcuts."""
        accel_group = Gtk.AccelGroup()
        self.add_accel_group(accel_group)

        key, mod = Gtk.accelerator_parse("<Control>n")
        accel_group.connect(key, mod, Gtk.AccelFlags.VISIBLE, lambda *_: self._on_add(None))

        key, mod = Gtk.accelerator_parse("<Control>r")
        accel_group.connect(key, mod, Gtk.AccelFlags.VISIBLE, lambda *_: self._on_refresh())

        key, mod = Gtk.accelerator_parse("Delete")
        accel_group.connect(key, mod, Gtk.AccelFlags.VISIBLE, lambda *_: self._on_delete_selected())

    # ── Model updates (always on the GTK main loop) ───────────────────

    def _on_model_changed(self, model: ProfileModel):
        if model.is_loading:
            self.spinner.start()
        else:
            self.spinner.stop()
        self.refresh_btn.set_sensitive(not model.is_loading)

        identity = model.identity
        self.avatar_label.set_text(identity.initials)
        self.identity_name_label.set_text(identity.display_name)
        self.identity_email_label.set_text(identity.display_email)

        if not model.is_loading:
            self._load_profiles()

    def _load_profiles(self):
        """Rebuild the list from the latest snapshot."""
        for child in self.list_box.get_children():
            self.list_box.remove(child)

        snapshot = self.model.snapshot
        if snapshot.error is not None:
            self._show_status(str(snapshot.error), error=True)

        for profile in snapshot.profiles:
            self.list_box.add(ProfileRow(profile))
        self.list_box.show_all()

    def _get_selected_profile(self) -> Optional[Profile]:
        row = self.list_box.get_selected_row()
        if row and isinstance(row, ProfileRow):
            return row.profile
        return None

    def _show_status(self, message, error=False):
        """Show status message."""
        bar_ctx = self.status_bar.get_style_context()
        if error:
            bar_ctx.add_class("error")
        else:
            bar_ctx.remove_class("error")
        self.status_label.set_text(message)
        self.status_revealer.set_reveal_child(True)

        # Auto-hide after 5 seconds
        GLib.timeout_add_seconds(5, lambda: self.status_revealer.set_reveal_child(False))

    def _report(self, result: OperationResult):
        message = result.message
        if result.warnings:
            message += " (" + "; ".join(result.warnings) + ")"
        self._show_status(message, error=not result.ok)

    # ── Context menu ──────────────────────────────────────────────────

    def _build_context_menu(self, profile):
        menu = Gtk.Menu()

        item_edit = Gtk.MenuItem(label="Edit")
        item_edit.connect("activate", lambda _: self._on_edit(profile))
        menu.append(item_edit)

        item_copy = Gtk.MenuItem(label="Copy Public Key")
        item_copy.connect("activate", lambda _: self._on_copy_public_key(profile))
        item_copy.set_sensitive(profile.public_key_path is not None and os.path.exists(profile.public_key_path))
        menu.append(item_copy)

        menu.append(Gtk.SeparatorMenuItem())

        item_delete = Gtk.MenuItem(label="Delete")
        item_delete.connect("activate", lambda _: self._on_delete(profile))
        menu.append(item_delete)

        menu.show_all()
        return menu

    def _on_button_press(self, widget, event):
        # Right click only
        if event.button != 3:
            return False
        row = self.list_box.get_row_at_y(int(event.y))
        if not isinstance(row, ProfileRow):
            return False
        self.list_box.select_row(row)
        self._build_context_menu(row.profile).popup_at_pointer(event)
        return True

    # ── Profile actions ───────────────────────────────────────────────

    def _on_add(self, button):
        values = ProfileDialog(self).run_form()
        if values:
            self._show_status(f"Creating profile '{values['name']}'…")
            self.model.create_profile(values["name"], values["email"], values["folder"], on_done=self._report)

    def _on_edit(self, profile: Profile):
        values = ProfileDialog(self, profile).run_form()
        if values:
            self.model.update_profile(profile, values["name"], values["email"], on_done=self._report)

    def _on_row_activated(self, list_box, row):
        if isinstance(row, ProfileRow):
            self._on_edit(row.profile)

    def _on_delete(self, profile: Profile):
        dialog = Gtk.MessageDialog(
            parent=self,
            flags=Gtk.DialogFlags.MODAL,
            message_type=Gtk.MessageType.WARNING,
            buttons=Gtk.ButtonsType.NONE,
            text=f"Delete '{profile.name}'?",
        )
        dialog.format_secondary_text(
            f"Repositories under {profile.folder} will fall back to the global identity. The SSH key is kept."
        )
        dialog.add_button("Cancel", Gtk.ResponseType.CANCEL)
        delete_btn = dialog.add_button("Delete", Gtk.ResponseType.OK)
        delete_btn.get_style_context().add_class(Gtk.STYLE_CLASS_DESTRUCTIVE_ACTION)
        dialog.set_default_response(Gtk.ResponseType.CANCEL)

        response = dialog.run()
        dialog.destroy()

        if response == Gtk.ResponseType.OK:
            self.model.delete_profile(profile, on_done=self._report)

    def _on_delete_selected(self):
        profile = self._get_selected_profile()
        if profile:
            self._on_delete(profile)

    def _on_copy_public_key(self, profile: Profile):
        self._report(self.model.copy_key_material(profile))

    # ── Menu actions ──────────────────────────────────────────────────

    def _on_global_identity(self, action, param):
        identity = self.model.identity
        values = IdentityDialog(self, identity.name, identity.email).run_form()
        if values:
            self.model.set_global_identity(values["name"], values["email"], on_done=self._report)

    def _on_theme(self, action, param):
        theme = param.get_string()
        action.set_state(param)
        self.preferences["theme"] = theme
        write_preferences(self.settings.preferences_path, self.preferences)
        self._setup_css()

    def _on_about(self, action, param):
        about = Gtk.AboutDialog(
            transient_for=self,
            modal=True,
            program_name="Git Switch",
            version="1.0.0",
            license_type=Gtk.License.MIT_X11,
            comments="Per-folder Git identities with their own SSH keys.",
        )
        about.run()
        about.destroy()

    def _on_refresh(self, *args):
        self.model.refresh()


class Application(Gtk.Application):
    """Main application class."""

    def __init__(self, settings: Settings):
        super().__init__(
            application_id=APP_ID,
            flags=Gio.ApplicationFlags.FLAGS_NONE,
        )
        self.settings = settings

    def do_activate(self):
        win = self.get_active_window() or MainWindow(self, self.settings)
        win.show_all()
        win.present()


def run_app() -> None:
    """Entry point for running the GTK application."""
    settings = Settings.from_env()
    init_logging(settings)
    # Filter out custom flags that GTK doesn't understand
    gtk_args = [a for a in sys.argv if a not in ("--gui", "-g", "--tray", "-t")]
    app = Application(settings)
    app.run(gtk_args)


if __name__ == "__main__":
    run_app()
