"""Interactive incremental search console.

Every edit of the query fires a new search; responses come back in any
order and are reconciled by sequence number, so the result list always
shows the answer to the newest query that has answered.  On enter the
selected result is handed to the output emitter once the terminal has been
given back.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Callable, List, Optional, Protocol, Set

from prompt_toolkit.application import Application
from prompt_toolkit.key_binding import KeyBindings, KeyPressEvent
from prompt_toolkit.keys import Keys
from prompt_toolkit.layout import HSplit, Layout, VSplit, Window
from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.layout.dimension import Dimension
from prompt_toolkit.styles import Style
from prompt_toolkit.widgets import Frame

from .config import SEARCH_LIMIT
from .emitter import OutputEmitter
from .models import ConsoleState, EditorTarget, FinalSelection, ResultItem, SearchRequest
from .panes import PreviewPane, ResultPane
from .query_editor import QueryEditor
from .sequencer import RequestSequencer
from .terminal import TerminalSession

logger = logging.getLogger(__name__)

STYLE = Style.from_dict({
    "prompt": "ansicyan bold",
    "query": "bold",
    "status": "ansibrightblack",
    "result.selected": "reverse bold ansired",
    "result.empty": "ansibrightblack",
    "frame.border": "ansiwhite",
})


class SearchBackend(Protocol):
    async def search(self, query_text: str, limit: int) -> List[ResultItem]: ...


def _handler(method: Callable[..., Any]) -> Callable[..., Any]:
    """Keep key handler errors inside the event loop: log and carry on."""

    @functools.wraps(method)
    def wrapper(self: "SearchConsole", *args: Any) -> Any:
        try:
            return method(self, *args)
        except Exception:
            logger.exception("Error in console handler %s", method.__name__)
            return None

    return wrapper


class SearchConsole:
    """Query editor, request sequencing and both panes behind one state machine.

    States are ``EDITING`` (initial) and ``TERMINATING`` (final).  Once
    terminating, every further key or response is ignored.
    """

    def __init__(
        self,
        backend: SearchBackend,
        session: TerminalSession,
        emitter: OutputEmitter,
        editor: EditorTarget = EditorTarget.CMD,
        limit: int = SEARCH_LIMIT,
    ) -> None:
        self.backend = backend
        self.session = session
        self.emitter = emitter
        self.editor = editor
        self.limit = limit

        self.query = QueryEditor()
        self.sequencer = RequestSequencer()
        self.results = ResultPane()
        self.preview = PreviewPane()

        self.state = ConsoleState.EDITING
        self.selection: Optional[FinalSelection] = None
        self._pending: Set["asyncio.Task[None]"] = set()
        self._app: Optional[Application[None]] = None

    @property
    def editing(self) -> bool:
        return self.state is ConsoleState.EDITING

    # ------------------------------------------------------------------
    # Key events
    # ------------------------------------------------------------------

    @_handler
    def type_character(self, char: str) -> None:
        if not self.editing:
            return
        self.query.append(char)
        self.dispatch()

    @_handler
    def paste(self, text: str) -> None:
        if not self.editing:
            return
        for char in text:
            if char.isprintable():
                self.query.append(char)
        self.dispatch()

    @_handler
    def delete_last(self) -> None:
        if not self.editing:
            return
        self.query.delete_last()
        self.dispatch()

    @_handler
    def clear_query(self) -> None:
        if not self.editing:
            return
        self.query.clear()
        self.dispatch()

    @_handler
    def move_cursor(self, delta: int) -> None:
        # Navigation never touches the sequencer
        if not self.editing:
            return
        if self.results.move_cursor(delta):
            self._show_current()
            self._invalidate()

    @_handler
    def submit(self) -> None:
        if not self.editing:
            return
        item = self.results.current()
        if item is None:
            return
        self.selection = FinalSelection(item=item, editor=self.editor)
        self._terminate()

    @_handler
    def cancel(self) -> None:
        if not self.editing:
            return
        self.selection = None
        self._terminate()

    # ------------------------------------------------------------------
    # Requests and responses
    # ------------------------------------------------------------------

    def dispatch(self) -> SearchRequest:
        """Send the current query to the backend without waiting for it."""
        request = SearchRequest(
            sequence_number=self.sequencer.next_sequence_number(),
            text=self.query.current_text(),
            limit=self.limit,
        )
        task = asyncio.get_running_loop().create_task(self._run_request(request))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        logger.debug("Dispatched #%d %r", request.sequence_number, request.text)
        return request

    async def _run_request(self, request: SearchRequest) -> None:
        try:
            items = await self.backend.search(request.text, request.limit)
        except Exception as exc:
            # Keep whatever is on screen
            logger.warning("Search #%d for %r failed: %s", request.sequence_number, request.text, exc)
            return
        self.receive(request, items)

    def receive(self, request: SearchRequest, items: List[ResultItem]) -> bool:
        """Apply a backend response if it is not older than the last one shown."""
        if not self.editing:
            return False
        if not self.sequencer.admit(request.sequence_number):
            return False
        self.results.replace(items)
        self._show_current()
        self._invalidate()
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def run(self) -> Optional[FinalSelection]:
        """Run until submit or cancel, release the terminal, then emit."""
        self._app = self._build_application()
        try:
            # Blank query: backend's default listing
            self.dispatch()
            await self._app.run_async()
        except EOFError:
            logger.info("Console input closed")
            self.cancel()
        except Exception:
            logger.exception("Console terminated unexpectedly")
            self.selection = None
            raise
        finally:
            if self.editing:
                self._terminate()
            self._app = None
            self.session.release()

        if self.selection is not None:
            self.emitter.emit(self.selection)
        return self.selection

    def _terminate(self) -> None:
        """Single teardown path for every transition out of EDITING."""
        self.state = ConsoleState.TERMINATING
        self.query.clear()
        self.results.replace([])
        for task in list(self._pending):
            task.cancel()
        if self._app is not None and self._app.is_running and not self._app.is_done:
            self._app.exit()

    def _show_current(self) -> None:
        item = self.results.current()
        if item is None:
            self.preview.show_banner()
        else:
            self.preview.show(item.content, item.language)

    def _invalidate(self) -> None:
        if self._app is not None:
            self._app.invalidate()

    # ------------------------------------------------------------------
    # prompt_toolkit wiring
    # ------------------------------------------------------------------

    def _render_query(self) -> List[Any]:
        return [
            ("class:prompt", "> "),
            ("class:query", self.query.current_text()),
            ("[SetCursorPosition]", ""),
            ("class:status", f"  {len(self.results)}/{self.limit}"),
        ]

    def _build_layout(self) -> Layout:
        query_window = Window(
            FormattedTextControl(self._render_query),
            height=1,
        )
        results_window = Window(
            FormattedTextControl(
                self.results.render,
                get_cursor_position=self.results.cursor_position,
            ),
            width=Dimension(weight=1),
            wrap_lines=False,
        )
        preview_frame = Frame(
            Window(FormattedTextControl(self.preview.render), wrap_lines=False),
            width=Dimension(weight=1),
        )
        root = HSplit([query_window, VSplit([results_window, preview_frame])])
        return Layout(root, focused_element=query_window)

    def _build_key_bindings(self) -> KeyBindings:
        kb = KeyBindings()

        @kb.add(Keys.Any)
        def _(event: KeyPressEvent) -> None:
            if len(event.data) == 1 and event.data.isprintable():
                self.type_character(event.data)

        @kb.add(Keys.BracketedPaste)
        def _(event: KeyPressEvent) -> None:
            self.paste(event.data)

        @kb.add("backspace")
        def _(event: KeyPressEvent) -> None:
            self.delete_last()

        @kb.add("c-u")
        def _(event: KeyPressEvent) -> None:
            self.clear_query()

        @kb.add("up")
        @kb.add("c-p")
        def _(event: KeyPressEvent) -> None:
            self.move_cursor(-1)

        @kb.add("down")
        @kb.add("c-n")
        def _(event: KeyPressEvent) -> None:
            self.move_cursor(1)

        @kb.add("enter")
        def _(event: KeyPressEvent) -> None:
            self.submit()

        @kb.add("escape", eager=True)
        @kb.add("c-c")
        def _(event: KeyPressEvent) -> None:
            self.cancel()

        return kb

    def _build_application(self) -> Application[None]:
        self.preview.width = max(self.session.output.get_size().columns // 2, 40)
        return Application(
            layout=self._build_layout(),
            key_bindings=self._build_key_bindings(),
            style=STYLE,
            full_screen=True,
            mouse_support=False,
            input=self.session.input,
            output=self.session.output,
        )
