"""Header registry: maps CSV header signatures to destination table names.

Each template file under the template directory holds the header row of one
table. The table name is the file stem minus its ``_template`` suffix, so
``orders_template.csv`` registers table ``orders``.
"""

import logging
from pathlib import Path

from csvship.config import ConfigError

logger = logging.getLogger(__name__)

TEMPLATE_SUFFIX = "_template"


def header_signature(line: str) -> str:
    """Normalize a header row into its lookup key.

    Trims surrounding whitespace (including the line terminator) once, then
    drops trailing delimiters left behind by spreadsheet exports.
    """
    return line.strip().rstrip(",")


def table_name_for(template_path: Path) -> str | None:
    """Derive the table name from a template file name, or None if it has none."""
    stem = template_path.stem
    if not stem.endswith(TEMPLATE_SUFFIX):
        return None
    name = stem[: -len(TEMPLATE_SUFFIX)]
    return name or None


def load_headers(template_dir: str | Path) -> dict[str, str]:
    """Load header signature -> table name mappings from template files.

    Files are read in sorted order; on a duplicate signature the last file
    wins.

    Raises:
        ConfigError: If the directory or one of its template files cannot be read.
    """
    template_dir = Path(template_dir)
    try:
        template_paths = sorted(p for p in template_dir.iterdir() if p.is_file())
    except OSError as exc:
        raise ConfigError(f"Cannot read template directory {template_dir}: {exc}") from exc

    headers: dict[str, str] = {}
    for path in template_paths:
        table_name = table_name_for(path)
        if table_name is None:
            logger.warning("Skipping %s: file name has no %r suffix", path.name, TEMPLATE_SUFFIX)
            continue

        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigError(f"Cannot read template file {path}: {exc}") from exc

        lines = content.strip().splitlines()
        signature = header_signature(lines[0]) if lines else ""
        if not signature:
            logger.warning("Skipping %s: template is empty", path.name)
            continue

        if signature in headers:
            logger.warning(
                "Header of %s duplicates table %r; %r wins",
                path.name,
                headers[signature],
                table_name,
            )
        headers[signature] = table_name
        logger.debug("Registered table %r: %s", table_name, signature)

    logger.info("Loaded %d table template(s) from %s", len(headers), template_dir)
    return headers
