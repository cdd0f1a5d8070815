import curses
import os
from typing import List, Optional

from .errors import GitSwitchError, OperationResult
from .logging_setup import init_logging
from .manager import ProfileRepository
from .model import ProfileModel
from .parser import Profile
from .settings import Settings


class CursesUI:
    def __init__(self, stdscr, model: ProfileModel):
        self.stdscr = stdscr
        self.model = model

        # Initialize colors
        curses.start_color()
        curses.init_pair(1, curses.COLOR_BLACK, curses.COLOR_WHITE)  # Selected
        curses.init_pair(2, curses.COLOR_GREEN, curses.COLOR_BLACK)  # Success
        curses.init_pair(3, curses.COLOR_YELLOW, curses.COLOR_BLACK)  # Headers
        curses.init_pair(4, curses.COLOR_CYAN, curses.COLOR_BLACK)  # Info
        curses.init_pair(5, curses.COLOR_RED, curses.COLOR_BLACK)  # Error

        # Hide cursor
        curses.curs_set(0)

        self.menu_items = [
            "Add Profile",
            "Edit Profile",
            "Delete Profile",
            "Copy Public Key",
            "Set Global Identity",
            "Refresh",
            "Quit",
        ]
        self.current_menu_idx = 0

    def show_message(self, message: str, color_pair: int = 0, wait: bool = True):
        """Show a message box."""
        self.stdscr.clear()
        height, width = self.stdscr.getmaxyx()

        lines = message.split('\n')
        y = height // 2 - len(lines) // 2

        for line in lines:
            x = width // 2 - len(line) // 2
            if y < height - 1:
                self.stdscr.addstr(y, max(0, x), line[:width-1], curses.color_pair(color_pair))
                y += 1

        if wait:
            self.stdscr.addstr(height - 2, 2, "Press any key to continue...", curses.color_pair(4))
            self.stdscr.refresh()
            self.stdscr.getch()

    def show_result(self, result: OperationResult):
        lines = [("Success! " if result.ok else "Error: ") + result.message]
        if result.warnings:
            lines.append("")
            lines.extend(f"Warning: {w}" for w in result.warnings)
        self.show_message("\n".join(lines), color_pair=2 if result.ok else 5)

    def get_input(self, prompt: str, default: str = "", y_pos: Optional[int] = None) -> Optional[str]:
        """Get text input from user. Returns None if ESC is pressed."""
        curses.echo()
        curses.curs_set(1)

        height, width = self.stdscr.getmaxyx()
        if y_pos is None:
            y_pos = height // 2

        self.stdscr.addstr(y_pos, 2, prompt, curses.color_pair(4))
        if default:
            self.stdscr.addstr(y_pos + 1, 2, f"[{default[:width - 10]}]: ")
        else:
            self.stdscr.addstr(y_pos + 1, 2, ": ")
        self.stdscr.refresh()

        input_str = ""
        while True:
            try:
                ch = self.stdscr.getch()

                # ESC key
                if ch == 27:
                    curses.noecho()
                    curses.curs_set(0)
                    return None

                # Enter key
                if ch in [10, 13]:
                    break

                # Backspace
                if ch in [curses.KEY_BACKSPACE, 127, 8]:
                    if input_str:
                        input_str = input_str[:-1]
                        y, x = self.stdscr.getyx()
                        self.stdscr.move(y, x - 1)
                        self.stdscr.delch()

                elif 32 <= ch <= 126:
                    input_str += chr(ch)

            except KeyboardInterrupt:
                curses.noecho()
                curses.curs_set(0)
                return None

        curses.noecho()
        curses.curs_set(0)

        result = input_str.strip()
        return result if result else default

    def confirm(self, message: str) -> bool:
        """Show a confirmation dialog. ESC or 'n' returns False."""
        self.stdscr.clear()
        height, width = self.stdscr.getmaxyx()

        y = height // 2
        for offset, line in enumerate(message.split("\n")):
            self.stdscr.addstr(y + offset, 2, line[:width - 4], curses.color_pair(3))
        self.stdscr.addstr(y + message.count("\n") + 2, 2, "[y]es / [n]o / [ESC] cancel", curses.color_pair(4))
        self.stdscr.refresh()

        while True:
            ch = self.stdscr.getch()
            if ch == 27:  # ESC
                return False
            if ch in [ord('y'), ord('Y')]:
                return True
            if ch in [ord('n'), ord('N')]:
                return False

    def select_profile(self, title: str) -> Optional[Profile]:
        """Show profile selection menu with arrow keys. Returns None if ESC pressed."""
        profiles = self.model.profiles
        if not profiles:
            self.show_message("No profiles available")
            return None

        selected_idx = 0

        while True:
            self.stdscr.clear()
            height, width = self.stdscr.getmaxyx()

            self.stdscr.addstr(1, 2, title, curses.color_pair(3) | curses.A_BOLD)
            self.stdscr.addstr(3, 2, "Use ↑/↓ arrows to navigate, Enter to select, ESC to cancel", curses.color_pair(4))

            y = 5
            for idx, profile in enumerate(profiles):
                if y >= height - 2:
                    break

                display_text = f"{idx + 1}. {profile.name} ({profile.email}) - {profile.folder}"
                if len(display_text) > width - 4:
                    display_text = display_text[:width - 7] + "..."

                if idx == selected_idx:
                    self.stdscr.addstr(y, 2, display_text, curses.color_pair(1))
                else:
                    self.stdscr.addstr(y, 2, display_text)

                y += 1

            self.stdscr.refresh()

            key = self.stdscr.getch()

            if key == 27:  # ESC
                return None
            elif key == curses.KEY_UP:
                selected_idx = (selected_idx - 1) % len(profiles)
            elif key == curses.KEY_DOWN:
                selected_idx = (selected_idx + 1) % len(profiles)
            elif key in [10, 13]:  # Enter
                return profiles[selected_idx]

    def display_main_screen(self):
        """Display the global identity, the profile table and the menu."""
        self.stdscr.clear()
        height, width = self.stdscr.getmaxyx()

        snapshot = self.model.snapshot
        identity = self.model.identity
        profiles: List[Profile] = snapshot.profiles

        # Header
        y = 0
        self.stdscr.addstr(y, 2, "=" * (width - 4), curses.color_pair(3))
        y += 1
        title = "Git Switch"
        self.stdscr.addstr(y, (width - len(title)) // 2, title, curses.color_pair(3) | curses.A_BOLD)
        y += 1
        self.stdscr.addstr(y, 2, "=" * (width - 4), curses.color_pair(3))
        y += 2

        self.stdscr.addstr(y, 2, "Global Identity:", curses.color_pair(2) | curses.A_BOLD)
        y += 1
        self.stdscr.addstr(y, 4, f"Name:  {identity.display_name}"[:width - 6], curses.color_pair(2))
        y += 1
        self.stdscr.addstr(y, 4, f"Email: {identity.display_email}"[:width - 6], curses.color_pair(2))
        y += 1

        if snapshot.error is not None:
            self.stdscr.addstr(y, 4, f"! {snapshot.error}"[:width - 6], curses.color_pair(5))
            y += 1
        elif snapshot.issues:
            self.stdscr.addstr(y, 4, f"! {len(snapshot.issues)} problem(s) while reading profiles, see log"[:width - 6], curses.color_pair(5))
            y += 1

        y += 1
        self.stdscr.addstr(y, 2, "-" * (width - 4))
        y += 1

        header = f"{'#':<4} {'Name':<20} {'Email':<25} {'Folder':<30}"
        self.stdscr.addstr(y, 2, header[:width - 4], curses.color_pair(3) | curses.A_BOLD)
        y += 1
        self.stdscr.addstr(y, 2, "-" * (width - 4))
        y += 1

        max_profiles_display = max(0, height - y - len(self.menu_items) - 4)

        for idx, profile in enumerate(profiles[:max_profiles_display]):
            name = profile.name[:19]
            email = profile.email[:24]
            folder = profile.folder if len(profile.folder) <= 29 else "…" + profile.folder[-28:]
            row = f"{idx + 1:<4} {name:<20} {email:<25} {folder:<30}"
            color = curses.color_pair(5) if profile.read_error else 0
            self.stdscr.addstr(y, 2, row[:width - 4], color)
            y += 1

        if not profiles:
            self.stdscr.addstr(y, 2, "No profiles yet. Choose 'Add Profile' to bind a folder to an identity.", curses.color_pair(4))
            y += 1
        elif len(profiles) > max_profiles_display:
            self.stdscr.addstr(y, 2, f"... and {len(profiles) - max_profiles_display} more profiles", curses.color_pair(4))
            y += 1

        # Menu
        y = height - len(self.menu_items) - 3
        self.stdscr.addstr(y, 2, "=" * (width - 4), curses.color_pair(3))
        y += 1

        for idx, item in enumerate(self.menu_items):
            if idx == self.current_menu_idx:
                self.stdscr.addstr(y, 2, f"► {item}", curses.color_pair(1) | curses.A_BOLD)
            else:
                self.stdscr.addstr(y, 2, f"  {item}")
            y += 1
            if y >= height - 1:
                break

        self.stdscr.addstr(height - 1, 2, "↑/↓: Navigate | Enter: Select | ESC: Back/Quit", curses.color_pair(4))

        self.stdscr.refresh()

    def add_profile(self):
        """Bind a folder to a new identity."""
        self.stdscr.clear()
        self.stdscr.addstr(1, 2, "Add New Profile", curses.color_pair(3) | curses.A_BOLD)
        self.stdscr.addstr(2, 2, "Press ESC to cancel", curses.color_pair(4))
        self.stdscr.refresh()

        name = self.get_input("Profile Name", y_pos=4)
        if name is None:
            return
        if not name:
            self.show_message("Error: Name is required", color_pair=5)
            return

        email = self.get_input("Email", y_pos=7)
        if email is None:
            return
        if not email:
            self.show_message("Error: Email is required", color_pair=5)
            return

        folder = self.get_input("Folder (repositories below it use this identity)", default=os.getcwd(), y_pos=10)
        if folder is None:
            return

        self.show_message("Creating profile and SSH key...", color_pair=4, wait=False)
        result = self.model.create_profile(name, email, folder).result()
        self.show_result(result)

    def edit_profile(self):
        """Change the identity of an existing profile."""
        profile = self.select_profile("Select Profile to Edit")
        if not profile:
            return

        self.stdscr.clear()
        self.stdscr.addstr(1, 2, f"Editing: {profile.name} ({profile.folder})", curses.color_pair(3) | curses.A_BOLD)
        self.stdscr.addstr(2, 2, "Press Enter to keep current value, ESC to cancel", curses.color_pair(4))
        self.stdscr.refresh()

        name = self.get_input("Name", default=profile.name, y_pos=4)
        if name is None:
            return

        email = self.get_input("Email", default=profile.email, y_pos=7)
        if email is None:
            return

        result = self.model.update_profile(profile, name, email).result()
        self.show_result(result)

    def delete_profile(self):
        """Delete a profile."""
        profile = self.select_profile("Select Profile to Delete")
        if not profile:
            return

        if self.confirm(f"Delete '{profile.name}' for {profile.folder}?\nThe SSH key is kept."):
            result = self.model.delete_profile(profile).result()
            self.show_result(result)

    def copy_public_key(self):
        """Copy public key to clipboard."""
        profile = self.select_profile("Select Profile to Copy Public Key")
        if not profile:
            return

        result = self.model.copy_key_material(profile)
        if result.ok:
            self.show_result(result)
            return
        try:
            pub = self.model.repository.read_public_key(profile)
        except GitSwitchError:
            self.show_result(result)
            return
        self.show_message(f"Clipboard tool not found.\n\nHere's the public key:\n\n{pub}", color_pair=4)

    def set_global_identity(self):
        """Edit the global user.name / user.email."""
        identity = self.model.identity
        self.stdscr.clear()
        self.stdscr.addstr(1, 2, "Global Identity", curses.color_pair(3) | curses.A_BOLD)
        self.stdscr.addstr(2, 2, "Used outside every profile folder. ESC to cancel", curses.color_pair(4))
        self.stdscr.refresh()

        name = self.get_input("Name", default=identity.name, y_pos=4)
        if name is None:
            return

        email = self.get_input("Email", default=identity.email, y_pos=7)
        if email is None:
            return

        result = self.model.set_global_identity(name, email).result()
        self.show_result(result)

    def run(self):
        """Main loop."""
        self.model.refresh().result()
        while True:
            self.display_main_screen()

            key = self.stdscr.getch()

            if key == 27:  # ESC
                if self.confirm("Are you sure you want to quit?"):
                    break
            elif key == curses.KEY_UP:
                self.current_menu_idx = (self.current_menu_idx - 1) % len(self.menu_items)
            elif key == curses.KEY_DOWN:
                self.current_menu_idx = (self.current_menu_idx + 1) % len(self.menu_items)
            elif key in [10, 13]:  # Enter
                selected = self.menu_items[self.current_menu_idx]

                if selected == "Add Profile":
                    self.add_profile()
                elif selected == "Edit Profile":
                    self.edit_profile()
                elif selected == "Delete Profile":
                    self.delete_profile()
                elif selected == "Copy Public Key":
                    self.copy_public_key()
                elif selected == "Set Global Identity":
                    self.set_global_identity()
                elif selected == "Refresh":
                    self.model.refresh().result()
                elif selected == "Quit":
                    if self.confirm("Are you sure you want to quit?"):
                        break


def run_cli() -> None:
    """Run the CLI interface."""
    settings = Settings.from_env()
    init_logging(settings)
    model = ProfileModel(ProfileRepository(settings))
    try:
        curses.wrapper(lambda stdscr: CursesUI(stdscr, model).run())
    finally:
        model.shutdown()
