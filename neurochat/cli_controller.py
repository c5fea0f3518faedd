"""Command interactivity logic lives here."""

import sys

from keyring import set_password
from keyring.errors import KeyringError
from prompt_toolkit import prompt
from prompt_toolkit.completion import PathCompleter
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import InMemoryHistory

from neurochat.file_manager import ingest_file, path_validator, session_completer
from neurochat.globals import (
    COMPLETER_STYLER,
    CONSOLE,
    KEYRING_SERVICE,
    USER_NAME,
    log_exception,
)
from neurochat.models import Session


class CLIController:
    """Handles and supports all command input"""

    def __init__(
        self,
        config,
        store,
        client,
        panel,
        ui,
    ):
        self.config = config
        self.store = store
        self.client = client
        self.panel = panel
        self.ui = ui
        self.filepath_history = InMemoryHistory()
        # File staged for the next message
        self.attachment = None

        # Command dict
        self.commands = {
            "!h": self.spawn_help_chart,
            "!help": self.spawn_help_chart,
            "!new": self.new_session,
            "!sessions": self.list_sessions,
            "!switch": self.switch_session,
            "!rename": self.rename_session,
            "!delete": self.delete_session,
            "!history": self.render_history,
            "!a": self.attach_file,
            "!attach": self.attach_file,
            "!detach": self.detach_file,
            "!config": self.spawn_settings_chart,
            "!clear": CONSOLE.clear,
            "!profile list": self.list_models,
            "!profile add": self.add_model,
            "!profile remove": self.remove_model,
            "!profile switch": self.switch_model,
            "!rate": self.set_refresh_rate,
            "!theme": self.set_code_theme,
            "!key": self.set_api_key,
            "!prompt": self.set_system_prompt,
            "!q": self.quit,
            "!quit": self.quit,
        }

        self.session_prompt = HTML(
            "Enter a session number or title<mediumpurple>:</mediumpurple> "
        )

    # <~~HELPERS~~>
    def _prompt_wrapper(
        self, prefix, cancel_msg="Canceled.", allow_empty=False, **kwargs
    ) -> str | None:
        """Prompt_toolkit wrapper for validating input."""
        try:
            # **kwargs passes completers, styles, history, etc automatically
            user_input = prompt(prefix, **kwargs)
            stripped = user_input.strip()
            if not stripped and not allow_empty:
                CONSOLE.print("[dim]No input detected.[/dim]\n")
                return None
            return stripped
        except (KeyboardInterrupt, EOFError):
            CONSOLE.print(f"[dim]{cancel_msg}[/dim]\n")
            return None

    def _resolve_session(self, choice: str) -> Session | None:
        """Finds a session by its 1-based list number or its title."""
        sessions = self.store.sessions
        if choice.isdigit():
            index = int(choice) - 1
            if 0 <= index < len(sessions):
                return sessions[index]
            return None
        lowered = choice.lower()
        return next((s for s in sessions if s.title.lower() == lowered), None)

    def _pick_session(self) -> Session | None:
        """Lists sessions and prompts for one."""
        self.list_sessions()
        choice = self._prompt_wrapper(
            self.session_prompt,
            completer=session_completer(self.store.sessions),
            style=COMPLETER_STYLER,
        )
        if not choice:
            return None
        session = self._resolve_session(choice)
        if session is None:
            CONSOLE.print(f"[dim]No session found for[/dim] '{choice}'.\n")
        return session

    def handle_input(self, user_input: str) -> bool:
        """Parse user input for a command & handle it"""
        cmd = user_input.strip().lower()
        if cmd in self.commands:
            self.commands[cmd]()
            return True
        if cmd.startswith("!"):
            CONSOLE.print(
                f"[dim]Unknown command[/dim] '{cmd}'[dim]. Type [cyan]!h[/cyan] for help.[/dim]\n"
            )
            return True
        return False  # No command detected

    def quit(self):
        CONSOLE.print("[yellow]✨ Farewell![/yellow]\n")
        sys.exit(0)

    # <~~CHARTS~~>
    def spawn_help_chart(self):
        """Markdown usage chart."""
        CONSOLE.print(self.ui.help_chart_constructor())
        CONSOLE.print()

    def spawn_settings_chart(self):
        """Markdown settings chart."""
        CONSOLE.print(self.ui.settings_chart_constructor())
        CONSOLE.print()

    # <~~MAIN CONFIG~~>
    def set_system_prompt(self):
        """Sets a new persistent system prompt within the config file."""
        sysprompt = self._prompt_wrapper(
            HTML("Enter a system prompt<mediumpurple>:</mediumpurple> ")
        )
        if not sysprompt:
            return
        self.config.system_prompt = sysprompt
        self.config.save()
        CONSOLE.print(f"[green]System prompt updated to:[/green] {sysprompt}\n")

    def set_api_key(self):
        """Allows the user to set an API key. SAFELY stores the user's API key with keyring"""
        new_key = self._prompt_wrapper(
            HTML("Enter an API key<mediumpurple>:</mediumpurple> ")
        )
        if not new_key:
            return
        try:
            # Try to store securely w/ keyring
            set_password(KEYRING_SERVICE, USER_NAME, new_key)
            CONSOLE.print("[green]API key updated.[/green]\n")
        except (KeyringError, ValueError, RuntimeError, OSError) as e:
            self.panel.spawn_error_panel(
                "KEYRING ERROR",
                f"Could not save to your OS keychain: {e}\nUsing key for this session only.",
            )
        self.client.reconnect(new_key)

    def set_refresh_rate(self):
        """Set a new custom refresh rate"""
        rate = self._prompt_wrapper(
            HTML("Enter a refresh rate<mediumpurple>:</mediumpurple> ")
        )
        if not rate:
            return
        try:
            value = int(rate)
            if value <= 3:
                raise ValueError
        except ValueError:
            self.panel.spawn_error_panel(
                "VALUE ERROR", "Please enter a positive number ≥ 4."
            )
            return

        self.config.refresh_rate = value
        self.config.save()
        CONSOLE.print(f"[green]Refresh rate set to:[/green] {value}\n")

    def set_code_theme(self):
        """Allows the user to change out the rich markdown theme"""
        theme = self._prompt_wrapper(
            HTML("Enter a valid theme name<mediumpurple>:</mediumpurple> ")
        )
        if not theme:
            return

        self.config.rich_code_theme = theme.lower()
        self.config.save()
        CONSOLE.print(f"[green]Your theme has been set to: [/green]{theme}\n")

    # <~~MODEL MANAGEMENT~~>
    def list_models(self):
        """List all configured models."""
        CONSOLE.print("[cyan]Configured profiles:[/cyan]")
        for m in self.config.models:
            tag = "(active)" if m["alias"] == self.config.active_model else ""
            CONSOLE.print(f"• {m['alias']} → {m['name']} [{m['endpoint']}] {tag}")
        CONSOLE.print()

    def add_model(self):
        """Interactively add a model profile."""
        alias = self._prompt_wrapper(HTML("Profile name<mediumpurple>:</mediumpurple> "))
        if not alias:
            return
        if any(m["alias"] == alias for m in self.config.models):
            CONSOLE.print(f"[dim]Profile[/dim] '{alias}' [dim]already exists.[/dim]\n")
            return
        name = self._prompt_wrapper(HTML("Model name<mediumpurple>:</mediumpurple> "))
        if not name:
            return
        CONSOLE.print("[yellow]Format:[/yellow] https://host[:port]/v1")
        endpoint = self._prompt_wrapper(
            HTML("API endpoint<mediumpurple>:</mediumpurple> ")
        )
        if not endpoint:
            return

        self.config.models.append({"alias": alias, "name": name, "endpoint": endpoint})
        self.config.save()
        CONSOLE.print(f"[green]Profile[/green] '{alias}' [green]added.[/green]\n")

    def remove_model(self):
        """Remove a model profile by alias."""
        self.list_models()
        alias = self._prompt_wrapper(
            HTML("Enter a profile name<mediumpurple>:</mediumpurple> ")
        )
        if not alias:
            return

        if alias == self.config.active_model:
            CONSOLE.print("[dim]The active profile cannot be removed.[/dim]\n")
            return

        before = len(self.config.models)
        self.config.models = [m for m in self.config.models if m["alias"] != alias]
        if len(self.config.models) < before:
            self.config.save()
            CONSOLE.print(f"[green]Profile[/green] '{alias}' [green]removed.[/green]\n")
        else:
            CONSOLE.print(f"[dim]No profile found under alias[/dim] '{alias}'.\n")

    def switch_model(self):
        """Switch active model profile by alias."""
        self.list_models()
        alias = self._prompt_wrapper(
            HTML("Enter a profile name<mediumpurple>:</mediumpurple> ")
        )
        if not alias:
            return

        match = next((m for m in self.config.models if m["alias"] == alias), None)
        if not match:
            CONSOLE.print(f"[dim]No profile found under alias[/dim] '{alias}'.\n")
            return

        self.config.active_model = alias
        self.config.save()
        self.client.reconnect()
        CONSOLE.print(
            f"[green]Switched to:[/green] {match['name']} "
            f"[dim]{match['endpoint']}[/dim]\n"
        )

    # <~~SESSION MANAGEMENT~~>
    def new_session(self):
        session = self.store.create_session()
        CONSOLE.print(f"[green]Started[/green] '{session.title}'.\n")

    def list_sessions(self):
        """Displays the session list."""
        CONSOLE.print("[cyan]Sessions:[/cyan]")
        self.panel.spawn_sessions_table()

    def switch_session(self):
        session = self._pick_session()
        if not session:
            return
        self.store.switch_active(session.id)
        self.panel.spawn_session(session)
        self.panel.spawn_status_panel()

    def rename_session(self):
        """Renames the active session. Blank input keeps the old title."""
        session = self.store.active_session
        if not session:
            return
        title = self._prompt_wrapper(
            HTML(f"New title for '{session.title}'<mediumpurple>:</mediumpurple> ")
        )
        if not title:
            return
        self.store.rename_session(session.id, title)
        CONSOLE.print(f"[green]Session renamed to:[/green] {title}\n")

    def delete_session(self):
        session = self._pick_session()
        if not session:
            return
        was_active = session.id == self.store.active_session_id
        self.store.delete_session(session.id)
        CONSOLE.print(f"[green]Session deleted:[/green] {session.title}\n")
        if was_active:
            self.panel.spawn_status_panel()

    def render_history(self):
        session = self.store.active_session
        if session:
            self.panel.spawn_session(session)

    # <~~FILE MANAGEMENT~~>
    def attach_file(self):
        """Stages a file for the next message"""
        path = self._prompt_wrapper(
            HTML("Enter file path<mediumpurple>:</mediumpurple> "),
            completer=PathCompleter(expanduser=True),
            validator=path_validator(),
            validate_while_typing=False,
            style=COMPLETER_STYLER,
            history=self.filepath_history,
        )
        if not path:
            return

        try:
            self.attachment = ingest_file(path)
        except Exception as e:
            log_exception(e, "Error in attach_file()")
            self.panel.spawn_error_panel("ERROR READING FILE", f"{e}")
            return
        CONSOLE.print(
            f"{self.attachment.name} [green]staged for your next message.[/green] "
            f"[dim]({self.attachment.mime_type})[/dim]\n"
        )

    def detach_file(self):
        if not self.attachment:
            CONSOLE.print("[dim]No attachment staged.[/dim]\n")
            return
        CONSOLE.print(f"{self.attachment.name} [green]removed.[/green]\n")
        self.attachment = None
