"""
Click command definitions for the voidweaver CLI.

Every command loads the session file, applies one operation and saves the
session again, so a sequence of invocations behaves like one editing
session. Machine-readable output (prompts, paths, JSON) goes to stdout;
progress and tables go to stderr.
"""

import json
from dataclasses import dataclass
from pathlib import Path

import click

from voidweaver import (
    AppState,
    BackendClient,
    Config,
    CredentialStore,
    ValidationError,
    __version__,
    build_raw_prompt,
    load_session,
    run_analysis,
    run_generation,
    run_refinement,
    save_session,
    set_config,
)
from voidweaver.cli import progress
from voidweaver.cli.handlers import cancel_check, cancellable, run_with_error_handling
from voidweaver.cli.utils import DEFAULT_SESSION_FILE, default_output_path, mask_secret
from voidweaver.core.codec import DIALECTS, format_tag, parse_tags
from voidweaver.core.config import MAX_SCALE, MAX_STEPS, MIN_SCALE, MIN_STEPS
from voidweaver.core.images import prepare_source_image, save_image_data
from voidweaver.core.models import WEIGHT_STEP, EngineType, Module, ModuleName
from voidweaver.core.schemas import ModulePayload
from voidweaver.core.state import build_prompt
from voidweaver.logging_config import configure_logging, get_verbosity_from_env
from voidweaver.utils.credentials import (
    GEMINI_API_KEY,
    GOOGLE_CREDENTIALS,
    NOVELAI_API_KEY,
    get_credential_store,
)

MODULE_CHOICE = click.Choice([m.value for m in ModuleName], case_sensitive=False)
ENGINE_CHOICE = click.Choice([e.value for e in EngineType], case_sensitive=False)
DIALECT_CHOICE = click.Choice(list(DIALECTS), case_sensitive=False)

# CLI names for the stored credential keys
KEY_NAMES = {
    "gemini": GEMINI_API_KEY,
    "novelai": NOVELAI_API_KEY,
    "google": GOOGLE_CREDENTIALS,
}


@dataclass
class CliContext:
    session_path: Path
    quiet: bool
    debug_api: bool


def _load_config(ctx_obj: CliContext) -> Config:
    config = Config.from_env()
    if ctx_obj.debug_api:
        config.debug_api = True
    config.validate()
    set_config(config)
    return config


def _credentials(config: Config) -> CredentialStore:
    """Stored credentials, falling back to the environment for keys never stored."""
    stored = get_credential_store(config.credentials_file)
    effective = CredentialStore()
    env_values = {
        GEMINI_API_KEY: config.gemini_api_key,
        NOVELAI_API_KEY: config.novelai_api_key,
        GOOGLE_CREDENTIALS: config.google_credentials,
    }
    for key, env_value in env_values.items():
        value = stored.get(key) or env_value
        if value:
            effective.set(key, value)
    return effective


def _module(state: AppState, name: str) -> Module:
    module = state.store.get(name)
    if module is None:
        raise ValidationError(f"Unknown module: {name!r}", field="module")
    return module


def _read_text_arg(text: str | None, file: Path | None) -> str:
    if file is not None:
        return file.read_text(encoding="utf-8")
    if text is None or text == "-":
        return click.get_text_stream("stdin").read()
    return text


@click.group(
    help=f"""VoidWeaver prompt editor: eight weighted-tag modules, refinement and generation.

\b
Version: {__version__}
"""
)
@click.version_option(version=__version__, package_name="voidweaver")
@click.option(
    "--session",
    "session_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_SESSION_FILE,
    envvar="VOIDWEAVER_SESSION",
    show_default=True,
    help="Session file shared between invocations.",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Minimize progress messages; only print results or errors.",
)
@click.option(
    "--verbose",
    "-v",
    "verbose_count",
    count=True,
    help="Increase verbosity: -v also show prompts, -vv show API and stream detail.",
)
@click.option(
    "--debug-api",
    is_flag=True,
    help="Log raw API request payload and response (image data truncated) for debugging.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    session_path: Path,
    quiet: bool,
    verbose_count: int,
    debug_api: bool,
) -> None:
    ctx.color = True
    # CLI flags override VOIDWEAVER_VERBOSITY
    verbose_level = min(verbose_count, 2) if verbose_count > 0 else get_verbosity_from_env()
    configure_logging(verbose_level=verbose_level, quiet=quiet)
    ctx.obj = CliContext(session_path=session_path, quiet=quiet, debug_api=debug_api)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print modules as JSON to stdout.")
@click.pass_obj
def modules(obj: CliContext, as_json: bool) -> None:
    """Show all eight modules with their tags and lock state."""

    def do_modules() -> None:
        state = load_session(obj.session_path, _load_config(obj))
        if as_json:
            payload = [ModulePayload.from_module(m).to_wire() for m in state.store.modules]
            click.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        else:
            progress.print_modules(state.store.modules)

    run_with_error_handling(do_modules, quiet=obj.quiet)


@cli.command()
@click.argument("module", type=MODULE_CHOICE)
@click.argument("text", required=False)
@click.option(
    "--file",
    "-f",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Read the tag text from a file instead of the argument.",
)
@click.option(
    "--dialect",
    "-d",
    type=DIALECT_CHOICE,
    default="line",
    show_default=True,
    help="'line': one tag per line; 'comma': comma-separated tags.",
)
@click.option("--show", is_flag=True, help="Print the module's editor text instead of editing.")
@click.pass_obj
def edit(
    obj: CliContext,
    module: str,
    text: str | None,
    file: Path | None,
    dialect: str,
    show: bool,
) -> None:
    """Replace a module's visible tags with TEXT (use '-' or omit to read stdin).

    \b
    Weighted tags use "1.5::text::". Hidden tags are kept.
    """

    def do_edit() -> None:
        state = load_session(obj.session_path, _load_config(obj))
        current = _module(state, module)
        if show:
            click.echo(state.store.editor_text(current.name, dialect))  # type: ignore[arg-type]
            return
        if current.locked:
            raise ValidationError(
                f"Module {current.name.value!r} is locked. Unlock it with 'voidweaver lock'.",
                field="module",
            )
        raw_text = _read_text_arg(text, file)
        state.store.apply_text(current.name, raw_text, dialect)  # type: ignore[arg-type]
        save_session(state, obj.session_path)
        updated = _module(state, module)
        if not obj.quiet:
            progress.print_success(f"{updated.display_name}: {len(updated.tags)} tags")

    run_with_error_handling(do_edit, quiet=obj.quiet)


@cli.command()
@click.argument("module", type=MODULE_CHOICE)
@click.pass_obj
def lock(obj: CliContext, module: str) -> None:
    """Toggle a module's lock. Locked modules are not changed by refinement."""

    def do_lock() -> None:
        state = load_session(obj.session_path, _load_config(obj))
        state.store.toggle_lock(module)
        save_session(state, obj.session_path)
        updated = _module(state, module)
        status = "locked" if updated.locked else "unlocked"
        if obj.quiet:
            click.echo(status)
        else:
            progress.print_success(f"{updated.display_name} {status}")

    run_with_error_handling(do_lock, quiet=obj.quiet)


@cli.command()
@click.argument("module", type=MODULE_CHOICE)
@click.argument("position", type=click.IntRange(min=1))
@click.option("--up", "direction", flag_value="up", help=f"Increase weight by {WEIGHT_STEP}.")
@click.option("--down", "direction", flag_value="down", help=f"Decrease weight by {WEIGHT_STEP}.")
@click.option("--set", "value", type=float, help="Set the weight to an exact value (clamped).")
@click.pass_obj
def weight(
    obj: CliContext,
    module: str,
    position: int,
    direction: str | None,
    value: float | None,
) -> None:
    """Adjust the weight of the tag at POSITION (1-based, as listed by 'edit --show')."""

    def do_weight() -> None:
        if (direction is None) == (value is None):
            raise ValidationError("Pass exactly one of --up, --down or --set.", field="weight")
        state = load_session(obj.session_path, _load_config(obj))
        current = _module(state, module)
        if current.locked:
            raise ValidationError(
                f"Module {current.name.value!r} is locked. Unlock it with 'voidweaver lock'.",
                field="module",
            )
        visible = current.visible_tags()
        if position > len(visible):
            raise ValidationError(
                f"{current.display_name} has {len(visible)} visible tags; no tag at {position}.",
                field="position",
            )
        tag = visible[position - 1]
        if value is not None:
            state.store.update_tag(current.name, tag.id, weight=value)
        else:
            delta = WEIGHT_STEP if direction == "up" else -WEIGHT_STEP
            state.store.adjust_tag_weight(current.name, tag.id, delta)
        save_session(state, obj.session_path)
        updated = _module(state, module).visible_tags()[position - 1]
        click.echo(format_tag(updated))

    run_with_error_handling(do_weight, quiet=obj.quiet)


@cli.command()
@click.option("--raw", is_flag=True, help="Print tag texts without weights.")
@click.pass_obj
def prompt(obj: CliContext, raw: bool) -> None:
    """Print the assembled generation prompt to stdout."""

    def do_prompt() -> None:
        state = load_session(obj.session_path, _load_config(obj))
        if raw:
            click.echo(build_raw_prompt(state.store.modules))
        else:
            click.echo(build_prompt(state))

    run_with_error_handling(do_prompt, quiet=obj.quiet)


@cli.command()
@click.argument("text", required=False)
@click.option(
    "--dialect",
    "-d",
    type=DIALECT_CHOICE,
    default="line",
    show_default=True,
    help="'line': one tag per line; 'comma': comma-separated tags.",
)
@click.option("--json", "as_json", is_flag=True, help="Print parsed tags as JSON.")
def parse(text: str | None, dialect: str, as_json: bool) -> None:
    """Parse tag TEXT (or stdin) and print one normalized tag per line.

    Does not read or change the session.
    """
    raw_text = _read_text_arg(text, None)
    tags = parse_tags(raw_text, dialect)  # type: ignore[arg-type]
    if as_json:
        click.echo(json.dumps([{"text": t.text, "weight": t.weight} for t in tags], indent=2))
        return
    for tag in tags:
        click.echo(format_tag(tag))


@cli.command()
@click.argument("image", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--api-key",
    envvar="GEMINI_API_KEY",
    help="Gemini API key (overrides the stored key and GEMINI_API_KEY).",
)
@click.pass_obj
def analyze(obj: CliContext, image: Path, api_key: str | None) -> None:
    """Decipher IMAGE into the eight modules (replaces all modules)."""

    def do_analyze() -> None:
        config = _load_config(obj)
        state = load_session(obj.session_path, config)
        image_data = prepare_source_image(image, max_pixels=config.max_image_pixels)
        key = api_key or _credentials(config).get(GEMINI_API_KEY)
        client = BackendClient(config)
        if obj.quiet:
            run_analysis(state, client, image_data, key)
        else:
            with progress.analysis_progress():
                run_analysis(state, client, image_data, key)
        save_session(state, obj.session_path)
        if obj.quiet:
            click.echo(state.raw_prompt)
        else:
            progress.print_modules(state.store.modules)
            progress.print_info("Source image kept for img2img (generate --img2img).")

    run_with_error_handling(do_analyze, quiet=obj.quiet)


@cli.command()
@click.argument("instruction")
@click.option(
    "--api-key",
    envvar="GEMINI_API_KEY",
    help="Gemini API key (overrides the stored key and GEMINI_API_KEY).",
)
@click.pass_obj
def refine(obj: CliContext, instruction: str, api_key: str | None) -> None:
    """Apply a natural-language INSTRUCTION to all unlocked modules."""

    def do_refine() -> None:
        config = _load_config(obj)
        state = load_session(obj.session_path, config)
        key = api_key or _credentials(config).get(GEMINI_API_KEY)
        client = BackendClient(config)
        if obj.quiet:
            run_refinement(state, client, instruction, key)
        else:
            locked = sum(1 for m in state.store.modules if m.locked)
            with progress.refinement_progress(locked_count=locked):
                run_refinement(state, client, instruction, key)
        save_session(state, obj.session_path)
        if not obj.quiet:
            progress.print_modules(state.store.modules)

    run_with_error_handling(do_refine, quiet=obj.quiet)


@cli.command()
@click.option("--engine", "-e", type=ENGINE_CHOICE, help="Generation engine.")
@click.option("--resolution", "-r", help="Resolution as WIDTHxHEIGHT, e.g. 832x1216.")
@click.option("--steps", type=click.IntRange(MIN_STEPS, MAX_STEPS), help="Sampling steps.")
@click.option("--scale", type=click.FloatRange(MIN_SCALE, MAX_SCALE), help="Guidance scale.")
@click.option(
    "--img2img/--no-img2img",
    default=None,
    help="Send the analyzed source image for img2img.",
)
@click.option("--strength", type=click.FloatRange(0, 0.99), help="img2img strength.")
@click.option(
    "--stream",
    "--deep-thinking",
    "stream",
    is_flag=True,
    help="Stream the deep-thinking log and sketch while generating.",
)
@click.option("--out", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Output file.")
@click.pass_obj
def generate(
    obj: CliContext,
    engine: str | None,
    resolution: str | None,
    steps: int | None,
    scale: float | None,
    img2img: bool | None,
    strength: float | None,
    stream: bool,
    out: Path | None,
) -> None:
    """Generate an image from the current modules. Prints the saved path to stdout."""

    def do_generate() -> None:
        config = _load_config(obj)
        state = load_session(obj.session_path, config)
        settings = state.settings
        if engine is not None:
            settings.engine = EngineType(engine.lower())
        if resolution is not None:
            settings.resolution = resolution
        if steps is not None:
            settings.steps = steps
        if scale is not None:
            settings.scale = scale
        if img2img is not None:
            settings.img2img = img2img
        if strength is not None:
            settings.strength = strength
        settings.deep_thinking = stream

        client = BackendClient(config)
        credentials = _credentials(config)
        on_log = None if obj.quiet else progress.print_thinking_line
        on_sketch = None if obj.quiet else progress.print_sketch_received
        if obj.quiet:
            image = run_generation(
                state, client, credentials, stream=stream, cancel_check=cancel_check
            )
        else:
            with progress.generation_progress(
                engine=settings.engine.value,
                resolution=settings.resolution,
                img2img=settings.img2img,
                streaming=stream,
            ):
                image = run_generation(
                    state,
                    client,
                    credentials,
                    stream=stream,
                    on_log=on_log,
                    on_sketch=on_sketch,
                    cancel_check=cancel_check,
                )
        save_session(state, obj.session_path)

        out_path = out if out is not None else Path(default_output_path("png"))
        save_image_data(image.image_data, out_path)
        if not obj.quiet:
            progress.print_generation_result(
                output_path=out_path,
                engine=settings.engine.value,
                prompt_used=image.prompt or "",
                thinking_lines=len(image.thinking_log),
                had_sketch=image.sketch_image is not None,
            )
        # Also print path to stdout for scriptability
        click.echo(str(out_path))

    with cancellable():
        run_with_error_handling(do_generate, quiet=obj.quiet)


@cli.command()
@click.option(
    "--refinements",
    "use_refinements",
    is_flag=True,
    help="Act on the refinement history instead of images.",
)
@click.option("--select", "select_index", type=int, help="Move the cursor to entry N (0-based).")
@click.option("--remove", "remove_index", type=int, help="Remove entry N (0-based).")
@click.option(
    "--save",
    "save_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the selected image to this file.",
)
@click.pass_obj
def history(
    obj: CliContext,
    use_refinements: bool,
    select_index: int | None,
    remove_index: int | None,
    save_path: Path | None,
) -> None:
    """Show, navigate or prune the image and refinement histories."""

    def do_history() -> None:
        state = load_session(obj.session_path, _load_config(obj))
        target = "refinements" if use_refinements else "images"
        ring = state.refinements if use_refinements else state.images
        changed = False
        if select_index is not None:
            if not 0 <= select_index < len(ring):
                raise ValidationError(
                    f"No {target} entry at index {select_index}.", field="select"
                )
            ring.set_index(select_index)
            changed = True
        if remove_index is not None:
            if not 0 <= remove_index < len(ring):
                raise ValidationError(
                    f"No {target} entry at index {remove_index}.", field="remove"
                )
            ring.remove_at(remove_index)
            changed = True
        if changed:
            save_session(state, obj.session_path)
        if save_path is not None:
            current = state.images.current
            if current is None:
                raise ValidationError("No generated image in history.", field="save")
            save_image_data(current.image_data, save_path)
            click.echo(str(save_path))
        if not obj.quiet:
            progress.print_history(state.images, state.refinements)

    run_with_error_handling(do_history, quiet=obj.quiet)


@cli.group()
def keys() -> None:
    """Manage stored service credentials (gemini, novelai, google)."""


@keys.command("set")
@click.argument("name", type=click.Choice(list(KEY_NAMES), case_sensitive=False))
@click.argument("value", required=False)
@click.pass_obj
def keys_set(obj: CliContext, name: str, value: str | None) -> None:
    """Store the credential NAME (prompts for VALUE if omitted)."""

    def do_set() -> None:
        config = _load_config(obj)
        secret = value
        if secret is None:
            secret = click.prompt(f"{name} credential", hide_input=True, err=True)
        if not secret:
            raise ValidationError("Credential value cannot be empty.", field=name)
        get_credential_store(config.credentials_file).set(KEY_NAMES[name.lower()], secret)
        if not obj.quiet:
            progress.print_success(f"Stored {name} credential")

    run_with_error_handling(do_set, quiet=obj.quiet)


@keys.command("show")
@click.pass_obj
def keys_show(obj: CliContext) -> None:
    """List credentials that are available, masked."""

    def do_show() -> None:
        config = _load_config(obj)
        stored = get_credential_store(config.credentials_file)
        effective = _credentials(config)
        for name, key in KEY_NAMES.items():
            secret = effective.get(key)
            if secret is None:
                click.echo(f"{name}: (not set)")
                continue
            source = "stored" if stored.has(key) else "env"
            click.echo(f"{name}: {mask_secret(secret)} ({source})")

    run_with_error_handling(do_show, quiet=obj.quiet)


@keys.command("remove")
@click.argument("name", type=click.Choice(list(KEY_NAMES), case_sensitive=False))
@click.pass_obj
def keys_remove(obj: CliContext, name: str) -> None:
    """Remove the stored credential NAME."""

    def do_remove() -> None:
        config = _load_config(obj)
        get_credential_store(config.credentials_file).remove(KEY_NAMES[name.lower()])
        if not obj.quiet:
            progress.print_success(f"Removed {name} credential")

    run_with_error_handling(do_remove, quiet=obj.quiet)


def main() -> None:
    """Entry point for the voidweaver console script."""
    cli()


__all__ = ["cli", "main"]
