"""Terminal rendering and keyboard input (rich)."""
from __future__ import annotations

import asyncio
import re
import threading
from typing import TYPE_CHECKING

from rich.columns import Columns
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from vocab_drill.models import QuizItem, QuizMode, WordEntry

if TYPE_CHECKING:
    from vocab_drill.explain import ExplanationResult

HELP_LINE = "q: Quit | Enter: Next | 1-9: Choose | r: Retry explanation"


def blank_out(sentence: str, word: str) -> str:
    """Replace *word* (and simple inflections) in *sentence* with a blank."""
    pattern = re.compile(rf"\b{re.escape(word)}\w*", re.IGNORECASE)
    return pattern.sub("___", sentence)


def question_text(item: QuizItem) -> str:
    """The cue shown for a multiple-choice item."""
    target = item.target
    if target.definition:
        return target.definition
    if target.example:
        return blank_out(target.example, target.text)
    raise ValueError(f"No definition or example to quiz {target.id!r} on")


def confidence_bar(confidence: float, width: int = 10) -> Text:
    filled = int(round(width * confidence))
    if confidence < 0.4:
        color = "red"
    elif confidence < 0.7:
        color = "yellow"
    else:
        color = "green"
    text = Text()
    text.append("█" * filled, style=color)
    text.append("░" * (width - filled), style="dim")
    text.append(f" {confidence:.2f}", style=color)
    return text


class TerminalUI:
    def __init__(self, console: Console | None = None, explain: bool = False):
        self.console = console or Console(highlight=False)
        self.explain = explain

    async def read(self, prompt: str) -> str:
        """Read one line without blocking the event loop. EOF counts as quit.

        The blocking read runs on a daemon thread, so cancelling the await
        (Ctrl-C) does not leave the interpreter waiting for Enter on exit.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[str] = loop.create_future()

        def deliver(line: str | None, error: BaseException | None) -> None:
            if future.done():
                return
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(line)

        def worker() -> None:
            line, error = None, None
            try:
                line = self.console.input(prompt)
            except EOFError:
                line = "q"
            except Exception as e:
                error = e
            if not loop.is_closed():
                loop.call_soon_threadsafe(deliver, line, error)

        threading.Thread(target=worker, name="vocab-drill-input", daemon=True).start()
        return await future

    def show_intro(self, stats: dict, pending: int = 0) -> None:
        text = Text()
        text.append(f"Corpus “{stats['corpus']}”", style="bold")
        text.append(f" | {stats['total_words']} words", style="dim")
        text.append(f" | {stats['words_new']} new", style="cyan")
        text.append(f" | {stats['words_reviewed']} reviewed", style="green")
        if pending:
            text.append(f" | enriching {pending} in background", style="yellow")
        self.console.print(text)
        self.console.print(Text(HELP_LINE, style="dim"), justify="center")

    async def present(self, item: QuizItem, choices: list[WordEntry], position: int) -> str:
        """Render *item* and return the raw response line."""
        if item.mode is QuizMode.RECALL:
            self._render_recall(item, position)
            if self.explain:
                return await self.read("[dim]Type what it means to check yourself, Enter to skip, q to quit[/dim] ")
            return await self.read("[dim]Enter to continue, q to quit[/dim] ")
        if item.mode is QuizMode.MULTIPLE_CHOICE:
            self._render_choice(item, choices, position)
            return await self.read(f"[bold]Choose 1-{len(choices)}[/bold] ")
        raise ValueError(f"Unknown quiz mode: {item.mode}")

    def _render_recall(self, item: QuizItem, position: int) -> None:
        target = item.target
        body = Text()
        body.append(f"{target.text}\n", style="bold cyan")
        if target.definition:
            body.append(f"\n{target.definition}\n")
        else:
            body.append("\n(no definition available)\n", style="dim")
        if target.example:
            body.append(f"\n{target.example}", style="italic")
        label = "Review" if item.review else "New word"
        self.console.print(Panel(body, title=f"[bold]#{position} {label}[/bold]", border_style="cyan"))

    async def ask_explanation(self, item: QuizItem) -> str:
        return await self.read(f"[bold]What does “{item.target.text}” mean?[/bold] ")

    async def review_explanation(self, item: QuizItem, result: ExplanationResult) -> str:
        """Show the Explanation and Score panes; return the next key."""
        if result.feedback:
            feedback = Text(result.feedback)
        else:
            feedback = Text("(no verdict from the model)", style="dim")
        if result.score is not None:
            score = confidence_bar(result.score)
        else:
            score = Text("n/a", style="dim")
        self.console.print(Columns([
            Panel(feedback, title="[bold]Explanation[/bold]", border_style="magenta", width=56),
            Panel(score, title="[bold]Score[/bold]", border_style="magenta", width=20),
        ]))
        for err in result.errors:
            self.console.print(f"[dim]{err}[/dim]")
        return await self.read("[dim]r to retry, Enter for the next word, q to quit[/dim] ")

    def _render_choice(self, item: QuizItem, choices: list[WordEntry], position: int) -> None:
        body = Text()
        body.append(question_text(item), style="bold")
        body.append("\n")
        for i, choice in enumerate(choices, 1):
            body.append(f"\n  {i}. ", style="dim")
            body.append(choice.text)
        self.console.print(Panel(body, title=f"[bold]#{position} Which word?[/bold]", border_style="blue"))

    def show_invalid(self, response: str, n_choices: int) -> None:
        self.console.print(f"[yellow]“{response}” is not a choice; enter 1-{n_choices} or q.[/yellow]")

    def show_feedback(self, item: QuizItem, selected: WordEntry, correct: bool, confidence: float) -> None:
        target = item.target
        text = Text()
        if correct:
            text.append("✓ Correct", style="bold green")
        else:
            text.append("✗ ", style="bold red")
            text.append(f"{selected.text}", style="red")
            text.append(", the answer was ", style="dim")
            text.append(target.text, style="bold")
            if selected.definition:
                text.append(f"\n  {selected.text}: {selected.definition}", style="dim")
        text.append("\n  confidence ")
        text.append_text(confidence_bar(confidence))
        self.console.print(text)

    def show_summary(self, shown: int, correct: int, quizzed: int) -> None:
        if shown == 0:
            return
        accuracy = f"{100 * correct / quizzed:.0f}%" if quizzed else "n/a"
        self.console.print(
            f"\n[bold]Session over:[/bold] {shown} words shown, "
            f"{correct}/{quizzed} quiz answers correct ({accuracy})."
        )

    def show_stats(self, stats: dict, rows: list[dict]) -> None:
        table = Table(title=f"Mastery: {stats['corpus']}")
        table.add_column("Word", style="bold")
        table.add_column("Seen", justify="right")
        table.add_column("Streak", justify="right")
        table.add_column("Confidence")
        for row in rows:
            table.add_row(row["text"], str(row["exposures"]), str(row["correct_streak"]),
                          confidence_bar(row["confidence"]))
        self.console.print(table)
        self.console.print(
            f"{stats['total_words']} words, {stats['words_reviewed']} reviewed, "
            f"{stats['with_definition']} defined, {stats['with_embedding']} embedded, "
            f"mean confidence {stats['mean_confidence']:.2f}"
        )

    def warn(self, message: str) -> None:
        self.console.print(f"[yellow]Warning:[/yellow] {message}")

    def error(self, message: str) -> None:
        self.console.print(f"[bold red]Error:[/bold red] {message}")
