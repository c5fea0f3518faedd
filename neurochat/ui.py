"""Builds and spawns UI objects. UIConstructor and GlobalPanels live here."""

import os
import textwrap
from datetime import datetime

from rich import box
from rich.console import Group, RenderableType
from rich.markdown import Markdown
from rich.panel import Panel
from rich.spinner import Spinner
from rich.table import Table
from rich.text import Text

from neurochat import __version__
from neurochat.globals import CACHE_DIR, CONFIG_FILE, CONSOLE, LOG_DIR
from neurochat.models import Message, MessageRole, Session


class UIConstructor:
    """Constructs and returns various UI objects"""

    def __init__(self, config, store):
        self.config = config
        self.store = store

    def user_panel_constructor(self, message: Message) -> Panel:
        body: RenderableType = Text(message.text)
        if message.attachment:
            tag = Text(
                f"📎 {message.attachment.name} ({message.attachment.mime_type})",
                style="dim",
            )
            body = Group(tag, body) if message.text else tag
        return Panel(
            body,
            box=box.HORIZONTALS,
            padding=(0, 0),
            title=Text("🌐 You", style="bold blue"),
            title_align="left",
            border_style="blue",
            style="default",
        )

    def assistant_panel_constructor(self, content: str) -> Panel:
        return Panel(
            Markdown(content, code_theme=self.config.rich_code_theme),
            title=Text("💬 Response", style="bold green"),
            title_align="left",
            border_style="green",
            style="default",
            width=None,
            box=box.HORIZONTALS,
            padding=(0, 0),
        )

    def pending_panel_constructor(self, content: str) -> RenderableType:
        """Live panel for a reply that is still streaming"""
        if not content:
            return Spinner(
                "dots", text="[bold medium_purple]Thinking...[/bold medium_purple]"
            )
        return self.assistant_panel_constructor(content)

    def error_panel_constructor(self, error: str, exception: str) -> Panel:
        return Panel(
            exception,
            title=Text(f"❌ {error}", style="bold red"),
            title_align="left",
            border_style="red",
            expand=False,
        )

    def message_constructor(self, message: Message) -> RenderableType:
        """Picks the panel for a stored message by role"""
        if message.role == MessageRole.USER:
            return self.user_panel_constructor(message)
        if message.role == MessageRole.ERROR:
            return self.error_panel_constructor("ERROR", message.text)
        if message.pending:
            return self.pending_panel_constructor(message.text)
        return self.assistant_panel_constructor(message.text)

    def status_panel_constructor(self) -> Panel:
        session = self.store.active_session
        title = session.title if session else "-"
        turns = (
            sum(1 for m in session.messages if m.role == MessageRole.USER)
            if session
            else 0
        )
        status_text = Text.assemble(
            ("💭 ", "cyan"),
            (f"{title}", "bold"),
            (" | "),
            (f"Turn: {turns}"),
            (" | "),
            (f"Sessions: {len(self.store.sessions)}"),
        )
        return Panel(
            status_text,
            border_style="dim",
            style="dim",
            expand=False,
        )

    def intro_panel_constructor(self) -> Panel:
        intro_text = Text.assemble(
            ("Model: ", "bold sandy_brown"),
            (f"{self.config.model_name}"),
            ("\nProfile: ", "bold sandy_brown"),
            (f"{self.config.alias_name}"),
            ("\nEndpoint: ", "bold sandy_brown"),
            (f"{self.config.endpoint}"),
            ("\nSystem Prompt: ", "bold sandy_brown"),
            (f"{self.config.system_prompt}", "italic"),
        )
        return Panel(
            intro_text,
            title=Text(f"🧠 NeuroChat {__version__}", "bold medium_purple"),
            title_align="left",
            border_style="medium_purple",
            box=box.HORIZONTALS,
            padding=(0, 0),
        )

    def sessions_table_constructor(self) -> Table:
        table = Table(box=box.SIMPLE_HEAD, show_edge=False, pad_edge=False)
        table.add_column("#", style="dim", justify="right")
        table.add_column("Title")
        table.add_column("Messages", justify="right")
        table.add_column("Created", style="dim")
        for i, s in enumerate(self.store.sessions, start=1):
            active = s.id == self.store.active_session_id
            created = datetime.fromtimestamp(s.created_at / 1000).strftime(
                "%d %b %H:%M"
            )
            table.add_row(
                str(i),
                Text(s.title, style="bold medium_purple" if active else ""),
                str(len(s.messages)),
                created,
            )
        return table

    def help_chart_constructor(self) -> Markdown:
        return Markdown(
            textwrap.dedent("""
            | **Sessions** | *Manage your conversations* |
            | --- | ----------- |
            | `!new` | Start a new chat session and make it active. |
            | `!sessions` | List all sessions. The active one is highlighted. |
            | `!switch` | Switch to another session by number or title. |
            | `!rename` | Rename the active session. |
            | `!delete` | Delete a session by number or title. |
            | `!history` | Re-render the active session. |

            | **Attachments** | *Send a file with your next message* |
            | --- | ----------- |
            | `!a` or `!attach` | Stage a file. Text is sent inline, images as base64. |
            | `!detach` | Drop the staged file. |

            | **Profile Management** | *Manage multiple models & API endpoints* |
            | --- | ----------- |
            | `!profile add` | Add a new model profile. Prompts for alias, model name, and **API endpoint**. |
            | `!profile remove` | Remove an existing profile. |
            | `!profile list` | List configured profiles. |
            | `!profile switch` | Switch between profiles. |

            | **Configuration** | *Main configuration commands* |
            | --- | ----------- |
            | `!config` | Display your current configuration settings and default directories. |
            | `!key` | Set an API key. Your API key is stored in your OS keychain. |
            | `!prompt` | Set a new system prompt. |
            | `!rate` | Set the live refresh rate (default is 30). |
            | `!theme` | Change your Markdown theme. Built-in themes can be found at https://pygments.org/styles/ |
            | `!clear` | Clear the terminal window. |
            | `!q` or `!quit` | Exit NeuroChat. Sessions are saved automatically. |
            | | |
            | `Ctrl + C` | Stop rendering the current reply and return to the prompt. |
            """)
        )

    def settings_chart_constructor(self) -> Markdown:
        return Markdown(
            textwrap.dedent(f"""
            | **Current Settings** | *Your current persistent settings* |
            | --- | ----------- |
            | **Profile**: | *{self.config.alias_name}* |
            | | |
            | **Model Name**: | *{self.config.model_name}* |
            | | |
            | **Endpoint**: | *{self.config.endpoint}* |
            | | |
            | **System Prompt**: | *{self.config.system_prompt}* |
            | | |
            | **Max Completion Tokens**: | *{self.config.max_completion_tokens}* |
            | | |
            | **Temperature / Top P**: | *{self.config.temperature} / {self.config.top_p}* |
            | | |
            | **Refresh Rate**: | *{self.config.refresh_rate}* |
            | | |
            | **Markdown Theme**: | *{self.config.rich_code_theme}* |
            - Your configuration file is located at: `{CONFIG_FILE}`
            - Your session cache is located at:      `{CACHE_DIR}`
            - Your error logs are located at:        `{LOG_DIR}`
            - The current working directory is:      `{os.getcwd()}`
            """)
        )


class GlobalPanels:
    """Global panel spawner"""

    def __init__(self, store, config, ui: UIConstructor):
        self.store = store
        self.config = config
        self.ui: UIConstructor = ui

    def spawn_intro_panel(self):
        """Simple welcome panel, prints on application launch."""
        CONSOLE.print(self.ui.intro_panel_constructor())
        CONSOLE.print(Markdown("Type `!h` for a list of commands."))
        CONSOLE.print()

    def spawn_status_panel(self):
        """Prints a status panel."""
        CONSOLE.print(self.ui.status_panel_constructor())
        CONSOLE.print()

    def spawn_error_panel(self, error: str, exception: str):
        """Error panel template, used by Chat and CLIController"""
        CONSOLE.print(self.ui.error_panel_constructor(error, exception))
        CONSOLE.print()

    def spawn_message(self, message: Message):
        """Prints one stored message."""
        if message.role == MessageRole.USER:
            CONSOLE.print()
        CONSOLE.print(self.ui.message_constructor(message))
        if message.role == MessageRole.USER:
            CONSOLE.print()

    def spawn_session(self, session: Session):
        """Prints a whole session - for a scrollable history."""
        CONSOLE.rule(Text(session.title, style="bold medium_purple"))
        if not session.messages:
            CONSOLE.print("[dim]No messages yet. Say hello![/dim]\n")
            return
        for message in session.messages:
            self.spawn_message(message)
        CONSOLE.print()

    def spawn_sessions_table(self):
        CONSOLE.print(self.ui.sessions_table_constructor())
        CONSOLE.print()
