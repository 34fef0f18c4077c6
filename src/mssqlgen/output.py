"""Writing generated documents to the output directory."""

from __future__ import annotations

import shutil
from logging import getLogger
from typing import TYPE_CHECKING

from mssqlgen.sdl_export import FILTERS_FILE, TYPES_DIR, config_to_yaml

if TYPE_CHECKING:
    from pathlib import Path

    from mssqlgen.generator import GenerationResult

logger = getLogger(__name__)

INDEX_FILE = "index.graphql"
CONFIG_FILE = "config.yaml"


def clean_output(output_dir: Path) -> None:
    """Remove artifacts of a previous run, leaving other files alone."""
    types_dir = output_dir / TYPES_DIR
    if types_dir.is_dir():
        shutil.rmtree(types_dir)
    for name in (INDEX_FILE, CONFIG_FILE):
        (output_dir / name).unlink(missing_ok=True)


def write_output(output_dir: Path, result: GenerationResult, dsn: str) -> list[Path]:
    """Write all documents of a generation run and return the written paths."""
    clean_output(output_dir)
    types_dir = output_dir / TYPES_DIR
    types_dir.mkdir(parents=True, exist_ok=True)

    written: list[Path] = []
    for document in result.documents:
        path = types_dir / f"{document.file_name}.graphql"
        path.write_text(document.content, encoding="utf-8")
        written.append(path)

    if result.filters is not None:
        path = types_dir / f"{FILTERS_FILE}.graphql"
        path.write_text(result.filters, encoding="utf-8")
        written.append(path)

    index = output_dir / INDEX_FILE
    index.write_text(result.index, encoding="utf-8")
    written.append(index)

    config = output_dir / CONFIG_FILE
    config.write_text(config_to_yaml(dsn), encoding="utf-8")
    written.append(config)

    logger.info("Wrote %d files to %s", len(written), output_dir)
    return written
