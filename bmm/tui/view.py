"""
Rendering of the session model with rich.

``view(model)`` is a pure function of the model: it returns a renderable and
never changes state.
"""
from typing import List, Sequence, Tuple

from rich.console import Group, RenderableType
from rich.layout import Layout
from rich.panel import Panel
from rich.text import Text
from rich import box

from bmm.tui.model import Model, Pane

FG_COLOR = "#282828"
PRIMARY_COLOR = "#d3869b"
SECONDARY_COLOR = "#83a598"
HELP_COLOR = "#fabd2f"
INFO_COLOR = "#83a598"
ERROR_COLOR = "#fb4934"
TITLE = " bmm "

DETAILS_HEIGHT = 7
SEARCH_HEIGHT = 3
STATUS_HEIGHT = 1

HELP_TEXT = """\
bmm has three panes: bookmarks, tags and the search input.

Keymaps
---

General
    ?               show/hide help
    q / <esc>       go back or quit
    <ctrl-c>        go back or quit

Bookmarks / tags
    j / <down>      go down
    k / <up>        go up
    g               go to the top
    G               go to the end
    s or /          search bookmarks
    t               show tags (bookmarks pane)
    o / <enter>     open selected URI in browser (bookmarks pane)
    <enter>         show bookmarks for selected tag (tags pane)

Search input
    <enter>         submit search
    <esc>           go back
    <ctrl-u>        clear input
"""


def visible_window(total: int, selected, rows: int) -> Tuple[int, int]:
    """Index range of list items to draw so the selection stays on screen."""
    if rows <= 0 or total == 0:
        return 0, 0
    if total <= rows or selected is None:
        return 0, min(total, rows)
    start = max(0, min(selected - rows // 2, total - rows))
    return start, start + rows


def view(model: Model) -> RenderableType:
    if model.terminal_too_small:
        return _render_too_small(model)
    if model.active_pane is Pane.HELP:
        return _render_help(model)
    if model.active_pane is Pane.TAGS:
        return _render_tags(model)
    return _render_bookmarks(model)


def _list_rows(model: Model, reserved: int) -> int:
    # Two border rows and one padding row around the list
    return model.terminal_height - reserved - 3


def _render_lines(labels: Sequence[str], selected, rows: int) -> Text:
    start, end = visible_window(len(labels), selected, rows)
    text = Text()
    for index in range(start, end):
        if index == selected:
            text.append(f"> {labels[index]}", style=f"bold {PRIMARY_COLOR}")
        else:
            text.append(f"  {labels[index]}")
        if index < end - 1:
            text.append("\n")
    return text


def _render_bookmarks(model: Model) -> Layout:
    searching = model.active_pane is Pane.SEARCH_INPUT
    reserved = DETAILS_HEIGHT + STATUS_HEIGHT + (SEARCH_HEIGHT if searching else 0)
    rows = _list_rows(model, reserved)

    bookmarks = model.bookmarks
    if bookmarks.items:
        body = _render_lines([b.uri for b in bookmarks.items], bookmarks.selected, rows)
    else:
        body = Text("no bookmarks to show; press s to search", style="dim")

    layout = Layout()
    sections = [
        Layout(Panel(body, title="bookmarks", title_align="left",
                     border_style=PRIMARY_COLOR, box=box.ROUNDED), name="list"),
        Layout(_render_details(model), name="details", size=DETAILS_HEIGHT),
    ]
    if searching:
        sections.append(Layout(_render_search_input(model), name="search", size=SEARCH_HEIGHT))
    sections.append(Layout(_render_status_bar(model), name="status", size=STATUS_HEIGHT))
    layout.split_column(*sections)
    return layout


def _render_details(model: Model) -> Panel:
    bookmark = model.bookmarks.current
    if bookmark is None:
        content = Text("")
    else:
        content = Text()
        content.append("URI  : ", style="bold")
        content.append(f"{bookmark.uri}\n")
        content.append("Title: ", style="bold")
        content.append(f"{bookmark.title or '<NOT SET>'}\n")
        content.append("Tags : ", style="bold")
        content.append(",".join(bookmark.tag_names) or "<NOT SET>")
    return Panel(content, title="details", title_align="left", border_style=SECONDARY_COLOR, box=box.ROUNDED)


def _render_search_input(model: Model) -> Panel:
    buffer = model.search_input
    text = Text(buffer.text)
    cursor = buffer.cursor_position
    if cursor >= len(buffer.text):
        text.append(" ", style="reverse")
    else:
        text.stylize("reverse", cursor, cursor + 1)
    return Panel(text, title="search", title_align="left", border_style=HELP_COLOR, box=box.ROUNDED)


def _render_tags(model: Model) -> Layout:
    rows = _list_rows(model, STATUS_HEIGHT)
    tags = model.tags
    if tags.items:
        body = _render_lines([str(t) for t in tags.items], tags.selected, rows)
    else:
        body = Text("no tags to show", style="dim")

    layout = Layout()
    layout.split_column(
        Layout(Panel(body, title="tags", title_align="left",
                     border_style=SECONDARY_COLOR, box=box.ROUNDED), name="list"),
        Layout(_render_status_bar(model), name="status", size=STATUS_HEIGHT),
    )
    return layout


def _render_help(model: Model) -> Layout:
    layout = Layout()
    layout.split_column(
        Layout(Panel(Text(HELP_TEXT), title=" help ", title_align="left",
                     border_style=HELP_COLOR, box=box.ROUNDED), name="help"),
        Layout(_render_status_bar(model), name="status", size=STATUS_HEIGHT),
    )
    return layout


def _render_too_small(model: Model) -> Panel:
    lines: List[Text] = [
        Text("Terminal size too small", style=f"bold {ERROR_COLOR}"),
        Text(f"current: {model.terminal_width}x{model.terminal_height}"),
        Text(f"minimum: {model.min_terminal_width}x{model.min_terminal_height}"),
        Text(""),
        Text("press q to quit", style="dim"),
    ]
    return Panel(Group(*lines), box=box.SIMPLE)


def _render_status_bar(model: Model) -> Text:
    text = Text()
    text.append(TITLE, style=f"bold {FG_COLOR} on {PRIMARY_COLOR}")
    text.append(f" {model.active_pane.value} ")

    if model.notice is not None:
        color = ERROR_COLOR if model.notice.is_error else INFO_COLOR
        text.append(model.notice.text, style=color)

    if model.debug:
        text.append(f"  [render: {model.render_counter}, events: {model.event_counter}]", style="dim")
    return text
