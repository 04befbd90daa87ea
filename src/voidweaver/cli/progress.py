"""
Rich progress displays for CLI operations.

All output goes to stderr to preserve stdout for machine-readable output
(prompts, paths, JSON).
"""

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from voidweaver.core.catalog import get_description
from voidweaver.core.codec import format_tag
from voidweaver.core.history import HistoryRing
from voidweaver.core.models import GeneratedImage, Module

# Console for stderr output (preserves stdout for machine output)
console = Console(stderr=True)


@contextmanager
def _spinner(description: str, style: str) -> Iterator[None]:
    progress = Progress(
        SpinnerColumn(spinner_name="dots"),
        TextColumn(f"[{style}]{{task.description}}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,  # Disappears when done
    )
    with progress:
        task = progress.add_task(description, total=None)
        yield
        progress.update(task, completed=True)


@contextmanager
def analysis_progress() -> Iterator[None]:
    """Display a spinner while the image is analyzed."""
    with _spinner("Deciphering image", "cyan"):
        yield


@contextmanager
def refinement_progress(locked_count: int = 0) -> Iterator[None]:
    """Display a spinner while modules are refined."""
    desc = "Refining modules"
    if locked_count:
        desc += f" [dim]({locked_count} locked)[/dim]"
    with _spinner(desc, "magenta"):
        yield


@contextmanager
def generation_progress(
    engine: str,
    resolution: str,
    img2img: bool = False,
    streaming: bool = False,
) -> Iterator[None]:
    """
    Display a spinner during image generation.

    Args:
        engine: The generation engine being used
        resolution: Requested resolution
        img2img: Whether the source image is sent for img2img
        streaming: Whether the deep-thinking log is streamed
    """
    desc_parts = ["Generating image", f"[dim]({engine}, {resolution})[/dim]"]
    features = []
    if img2img:
        features.append("[dim cyan]img2img[/dim cyan]")
    if streaming:
        features.append("[dim green]deep thinking[/dim green]")
    if features:
        desc_parts.append("• " + " + ".join(features))
    with _spinner(" ".join(desc_parts), "green"):
        yield


def print_thinking_line(line: str) -> None:
    console.print(f"[dim]│ {escape(line)}[/dim]")


def print_sketch_received(data: str) -> None:
    console.print(f"[dim cyan]│ sketch received ({len(data)} chars)[/dim cyan]")


def print_modules(modules: Sequence[Module]) -> None:
    """Print the modules as a table: name, lock state and tags."""
    table = Table(show_header=True, header_style="bold cyan", expand=False)
    table.add_column("Module", style="cyan", no_wrap=True)
    table.add_column("Lock", justify="center")
    table.add_column("Tags")
    for module in modules:
        tags = ", ".join(
            escape(format_tag(t)) + (" [dim](hidden)[/dim]" if t.hidden else "")
            for t in module.tags
        )
        table.add_row(
            f"{module.display_name} [dim]({module.name.value})[/dim]",
            "[yellow]🔒[/yellow]" if module.locked else "",
            tags or f"[dim]{escape(get_description(module.name))}[/dim]",
        )
    console.print(table)


def print_history(images: HistoryRing[GeneratedImage], refinements: HistoryRing[str]) -> None:
    """Print both history rings, marking the entry under each cursor."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="cyan", justify="right")
    table.add_column()
    if not len(images):
        table.add_row("Images", "[dim]none[/dim]")
    for i, image in enumerate(images):
        marker = "[bold green]▶[/bold green]" if i == images.index else " "
        prompt = image.prompt or ""
        if len(prompt) > 60:
            prompt = prompt[:57] + "..."
        table.add_row(f"{marker} image {i}", f"[dim]{escape(prompt)}[/dim]")
    if not len(refinements):
        table.add_row("Refinements", "[dim]none[/dim]")
    for i, instruction in enumerate(refinements):
        marker = "[bold green]▶[/bold green]" if i == refinements.index else " "
        table.add_row(f"{marker} refine {i}", escape(instruction))
    console.print(table)


def print_generation_result(
    output_path: Path,
    engine: str,
    prompt_used: str,
    thinking_lines: int = 0,
    had_sketch: bool = False,
) -> None:
    """Print a rich formatted success message with generation details."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="cyan", justify="right", vertical="top")
    table.add_column(style="white")

    table.add_row("Saved to", f"[bold green]{escape(str(output_path))}[/bold green]")
    table.add_row("Engine", engine)
    if thinking_lines:
        table.add_row("Thinking", f"{thinking_lines} log lines")
    if had_sketch:
        table.add_row("Sketch", "[cyan]✓[/cyan] received")
    table.add_row("Prompt", f"[dim]{escape(prompt_used)}[/dim]")

    panel = Panel(
        table,
        title="[bold green]✓ Image Generated[/bold green]",
        border_style="green",
        padding=(1, 2),
    )
    console.print()
    console.print(panel)


def print_info(message: str) -> None:
    """Print an info message in cyan."""
    console.print(f"[cyan]ℹ[/cyan] {message}")


def print_warning(message: str) -> None:
    """Print a warning message in yellow."""
    console.print(f"[yellow]⚠[/yellow] {escape(message)}")


def print_error(message: str) -> None:
    """Print an error message in red."""
    console.print(f"[red]✗[/red] {escape(message)}")


def print_success(message: str) -> None:
    """Print a success message in green."""
    console.print(f"[green]✓[/green] {message}")
