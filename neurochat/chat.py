#!/usr/bin/env python3

# <~~~~~~~~~~>
#  NEUROCHAT
# <~~~~~~~~~~>

import sys
import time

from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from neurochat.cli_controller import CLIController
from neurochat.completion_client import CompletionClient
from neurochat.config import Config
from neurochat.conversation_store import ConversationStore
from neurochat.globals import (
    CONSOLE,
    init_logger,
    log_exception,
    root_prompt,
    setup_keyring_backend,
    spinner_constructor,
)
from neurochat.models import StoreState
from neurochat.orchestrator import ChatOrchestrator
from neurochat.storage import FileCache
from neurochat.ui import GlobalPanels, UIConstructor


class Chat:
    """Houses the main application loop and the live reply renderer"""

    def __init__(
        self,
        config: Config,
        store: ConversationStore,
        orchestrator: ChatOrchestrator,
        panel: GlobalPanels,
        ui: UIConstructor,
        controller: CLIController,
    ):
        self.config: Config = config
        self.store: ConversationStore = store
        self.orchestrator: ChatOrchestrator = orchestrator
        self.panel: GlobalPanels = panel
        self.ui: UIConstructor = ui
        self.controller: CLIController = controller

        # Placeholder for live display object
        self.live: Live | None = None
        # Session the in-flight reply belongs to, even if the user switches away
        self.turn_session_id: str | None = None
        # Baseline timer for the rendering loop
        self.last_update_time: float = time.monotonic()

        self.store.subscribe(self.on_state_change)

    # <~~RENDERING~~>
    def on_state_change(self, state: StoreState):
        """Store observer. Redraws the pending reply, frame-limited to refresh_rate."""
        if not self.live or not self.orchestrator.is_sending:
            return
        current_time = time.monotonic()
        if current_time - self.last_update_time < 1 / self.config.refresh_rate:
            return
        self.last_update_time = current_time
        self.update_live(state)

    def update_live(self, state: StoreState):
        session = next((s for s in state.sessions if s.id == self.turn_session_id), None)
        if self.live and session and session.messages:
            self.live.update(self.ui.message_constructor(session.messages[-1]))

    # <~~STREAMING~~>
    def stream_turn(self, text: str):
        """Sends one message and renders the reply while it streams."""
        attachment = self.controller.attachment
        self.turn_session_id = self.store.active_session_id
        self.live = Live(
            self.ui.pending_panel_constructor(""),
            console=CONSOLE,
            refresh_per_second=self.config.refresh_rate,
            transient=True,
        )
        accepted = False
        interrupted = False
        self.live.start()
        try:
            accepted = self.orchestrator.send(text, attachment)
        # Ctrl+C stops the turn; the placeholder is still finalized by the orchestrator
        except KeyboardInterrupt:
            interrupted = True
        finally:
            self.live.stop()
            self.live = None

        if interrupted:
            CONSOLE.print("[dim]Reply interrupted.[/dim]\n")
        if accepted:
            self.controller.attachment = None
        elif not interrupted:
            return
        self.spawn_turn_result()

    def spawn_turn_result(self):
        """Prints the finalized reply, or the error banner."""
        if self.orchestrator.last_error:
            self.panel.spawn_error_panel("API ERROR", self.orchestrator.last_error)
            self.orchestrator.clear_error()
            return
        session = self.store.get_session(self.turn_session_id)
        if session and session.messages:
            self.panel.spawn_message(session.messages[-1])
            CONSOLE.print()
            self.panel.spawn_status_panel()

    def run(self):
        """Helper function for running the application"""
        self.panel.spawn_intro_panel()
        session = self.store.active_session
        if session and session.messages:
            self.panel.spawn_session(session)
        self.panel.spawn_status_panel()
        while True:
            try:
                user_input = root_prompt()
            except (KeyboardInterrupt, EOFError):  # Ctrl + c implementation for exiting
                CONSOLE.print("[yellow]✨ Farewell![/yellow]\n")
                break
            if self.controller.handle_input(user_input):
                continue
            if not user_input.strip() and not self.controller.attachment:
                continue
            CONSOLE.print()
            self.stream_turn(user_input.strip())


# <~~MAIN FLOW~~>
def main():
    try:
        # Start a spinner, mostly for cold starts
        with Live(
            spinner_constructor("Launching NeuroChat..."),
            refresh_per_second=8,
            console=CONSOLE,
        ):
            init_logger()  # Initialize the log file
            setup_keyring_backend()
            config = Config()
            config.load()  # Loads config variables from file, creating it if needed
            store = ConversationStore(FileCache())
            client = CompletionClient(config)
            orchestrator = ChatOrchestrator(store, client)
            ui = UIConstructor(config, store)
            panel = GlobalPanels(store, config, ui)
            controller = CLIController(config, store, client, panel, ui)
            chat = Chat(config, store, orchestrator, panel, ui, controller)
        CONSOLE.clear()  # Clears the viewport
        chat.run()  # Runs the application
        config.save()  # Saves config on exit
    except (KeyboardInterrupt, EOFError):
        CONSOLE.print("[yellow]✨ Farewell![/yellow]\n")
    except Exception as e:
        log_exception(e, "Critical startup error")  # Log any critical errors
        CONSOLE.print(
            Panel(
                f"{e}",
                title=Text("❌ CRITICAL ERROR", style="bold red"),
                title_align="left",
                border_style="red",
                expand=False,
            )
        )
        sys.exit(1)


if __name__ == "__main__":
    main()
