"""
listingdeck - property brochure builder

Commands:
  - scan:     Classify the photos in a directory and print a group as JSON
  - layout:   Print the layout pages and placeholder mapping of a group JSON
  - generate: Generate the Slides presentation for a stored project
"""
from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional

import click

from . import __version__
from .core.errors import DocumentGenerationError, UnsupportedDistributionError
from .core.layouts import layout_pages
from .core.models import GroupKind, ImageGroup, ImageItem, MAX_GROUP_SIZE
from .core.orientation import ImageAnalyzer
from .core.placeholders import plan_group, plan_stored_group

DEFAULT_FORMATS = "png,jpg,jpeg,gif,webp,bmp"


class ImageScanner:
    def __init__(self, allowed_extensions: Iterable[str], recursive: bool = False) -> None:
        self.allowed = {ext.lower().lstrip(".") for ext in allowed_extensions}
        self.recursive = recursive

    def is_image(self, path: Path) -> bool:
        return path.is_file() and path.suffix.lower().lstrip(".") in self.allowed

    def scan(self, root: Path) -> List[Path]:
        if root.is_file():
            return [root] if self.is_image(root) else []
        iterator = root.rglob("*") if self.recursive else root.glob("*")
        return sorted(f for f in iterator if self.is_image(f))


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(__version__, prog_name="listingdeck")
@click.option("--verbose", "-v", is_flag=True, help="Log progress to stderr.")
def cli(verbose: bool) -> None:
    """listingdeck command line interface."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _resolve_path(path: str) -> Path:
    p = Path(path).expanduser()
    if not p.exists():
        raise click.ClickException(f"Path not found: {p}")
    return p


@cli.command("scan")
@click.option("--directory", "--dir", "-d", required=True, type=str, help="Directory of photos.")
@click.option(
    "--kind",
    type=click.Choice([k.value for k in GroupKind]),
    default=GroupKind.EXTERIOR.value,
    show_default=True,
    help="Photo group the directory belongs to.",
)
@click.option("--recursive/--no-recursive", default=False, help="Scan subdirectories recursively.")
@click.option("--formats", default=DEFAULT_FORMATS, show_default=True, help="Comma-separated extensions.")
def scan(directory: str, kind: str, recursive: bool, formats: str) -> None:
    """Classify photos (sorted by path) and print the group JSON."""
    from .web.settings import get_orientation_thresholds

    root = _resolve_path(directory)
    files = ImageScanner(formats.split(","), recursive=recursive).scan(root)
    if not files:
        raise click.ClickException(f"No images found in {root}")

    analyzer = ImageAnalyzer(*get_orientation_thresholds())
    items = tuple(ImageItem(str(f), analyzer.classify_file(f)) for f in files)
    group = ImageGroup(GroupKind(kind), items)
    if len(group) > MAX_GROUP_SIZE:
        click.echo(f"Warning: only the first {MAX_GROUP_SIZE} of {len(group)} images are used.", err=True)
        group = group.truncated()

    pages: List[int] = []
    if group.is_complete:
        pages = plan_group(group).layout_pages
    else:
        click.echo(f"Warning: {len(group)} image(s) cannot be laid out; at least 2 are needed.", err=True)

    click.echo(
        json.dumps(
            {
                "kind": group.kind.value,
                "images": group.urls,
                "orientations": group.orientation_map(),
                "layout_pages": pages,
            },
            ensure_ascii=False,
            indent=2,
        )
    )


@cli.command("layout")
@click.option("--file", "-f", "group_file", required=True, type=str, help="Group JSON written by 'scan'.")
@click.option("--kind", type=click.Choice([k.value for k in GroupKind]), default=None, help="Overrides the kind in the file.")
def layout(group_file: str, kind: Optional[str]) -> None:
    """Print layout pages and the placeholder mapping for a stored group."""
    path = _resolve_path(group_file)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise click.ClickException(f"Cannot read group file {path}: {exc}") from exc
    if not isinstance(data, dict) or not isinstance(data.get("images"), list):
        raise click.ClickException(f"{path} is not a group file (missing 'images' list)")

    group_kind = GroupKind(kind or data.get("kind") or GroupKind.EXTERIOR.value)
    try:
        plan = plan_stored_group(group_kind, data["images"], data.get("orientations"), data.get("layout_pages"))
    except UnsupportedDistributionError as exc:
        raise click.ClickException(str(exc)) from exc

    output = plan.to_dict()
    output["pages"] = [{"type": p.type.value, "page_number": p.page_number} for p in layout_pages(plan.kind, plan.layouts)]
    click.echo(json.dumps(output, ensure_ascii=False, indent=2))


@cli.command("generate")
@click.option("--project", "-p", "project_id", required=True, type=str, help="Project ID.")
@click.option("--language", "-l", default=None, help="Presentation language (overrides project language).")
def generate(project_id: str, language: Optional[str]) -> None:
    """Generate the presentation for a stored project and print its URLs."""
    from .web.services.generation import generate_project

    try:
        result = generate_project(project_id, language=language)
    except FileNotFoundError as exc:
        raise click.ClickException(str(exc)) from exc
    except (UnsupportedDistributionError, DocumentGenerationError) as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(result.view_url)
    click.echo(result.edit_url)


if __name__ == "__main__":
    try:
        cli()
    except KeyboardInterrupt:
        click.echo("Aborted.", err=True)
        sys.exit(130)
