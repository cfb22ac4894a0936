"""Typer CLI for generating captions, themes and text improvements."""
import asyncio
import logging
import random
from typing import Optional

import orjson
import typer

from . import fallback
from .config import load_config
from .generator import CaptionGenerator

# importing necessary functions from dotenv library
from dotenv import load_dotenv
# loading variables from .env file
load_dotenv()

app = typer.Typer(add_completion=False)


@app.callback()
def main_options(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
):
    # Fallback notices are reported via --show-source; keep stderr quiet otherwise
    logging.getLogger("meme_captions").setLevel(logging.DEBUG if verbose else logging.ERROR)
    if verbose:
        logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _generator(config: Optional[str], seed: Optional[int]) -> CaptionGenerator:
    cfg = load_config(config)
    rng = random.Random(seed) if seed is not None else None
    return CaptionGenerator(cfg, rng=rng)


def _echo_json(data) -> None:
    typer.echo(orjson.dumps(data, option=orjson.OPT_INDENT_2).decode("utf-8"))


def _check_position(position: str) -> str:
    position = position.lower()
    if position not in ("top", "bottom"):
        raise typer.BadParameter("position must be 'top' or 'bottom'")
    return position


@app.command()
def caption(
    template: str = typer.Argument(..., help="Meme template name, e.g. 'Drake Hotline Bling'."),
    position: str = typer.Option("top", help="Caption slot: top or bottom."),
    context: str = typer.Option(None, help="Optional humor context (work, school, gaming, love, ...)."),
    seed: int = typer.Option(None, help="Seed for fallback randomness."),
    config: str = typer.Option(None, help="Config YAML (defaults to config/meme_ai.yaml if present)."),
    show_source: bool = typer.Option(False, help="Also print where the caption came from."),
):
    """Generate a single caption, falling back to the offline bank on any failure."""
    position = _check_position(position)
    gen = _generator(config, seed)
    result = asyncio.run(gen.generate_caption_with_meta(template, position, context))
    typer.echo(result.text)
    if show_source:
        note = f" ({result.error})" if result.error else ""
        typer.echo(f"source: {result.source}{note}; {result.remaining_requests} AI requests left")


@app.command()
def both(
    template: str = typer.Argument(..., help="Meme template name."),
    context: str = typer.Option(None, help="Optional humor context."),
    seed: int = typer.Option(None, help="Seed for fallback randomness."),
    config: str = typer.Option(None, help="Config YAML."),
):
    """Generate top and bottom captions."""
    gen = _generator(config, seed)
    top, bottom = asyncio.run(gen.generate_both(template, context))
    _echo_json({"top": top, "bottom": bottom})


@app.command()
def themes(
    template: str = typer.Argument(..., help="Meme template name."),
    seed: int = typer.Option(None, help="Seed for fallback randomness."),
    config: str = typer.Option(None, help="Config YAML."),
):
    """Suggest themes (name, description, top/bottom text) for a template."""
    gen = _generator(config, seed)
    result = asyncio.run(gen.generate_themes(template))
    _echo_json([t.model_dump(by_alias=True) for t in result])


@app.command()
def improve(
    top: str = typer.Argument(..., help="Current top text."),
    bottom: str = typer.Argument("", help="Current bottom text."),
    seed: int = typer.Option(None, help="Seed for local enhancement randomness."),
    config: str = typer.Option(None, help="Config YAML."),
):
    """Punch up existing captions."""
    gen = _generator(config, seed)
    result = asyncio.run(gen.improve_text(top, bottom))
    _echo_json(result.model_dump())


@app.command()
def classify(template: str = typer.Argument(..., help="Meme template name.")):
    """Show how a template name is categorised for fallback captions."""
    _echo_json(fallback.classify(template).model_dump())


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address."),
    port: int = typer.Option(3000, help="Bind port."),
    model: str = typer.Option(None, help="litellm model id (overrides config 'model')."),
    config: str = typer.Option(None, help="Config YAML."),
):
    """Run the caption proxy backend."""
    import uvicorn
    from .proxy import create_app

    cfg = load_config(config)
    model = model or cfg.model
    typer.echo(f"AI Available: {'Yes' if model else 'No'}")
    uvicorn.run(create_app(model=model), host=host, port=port)


def main():  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
