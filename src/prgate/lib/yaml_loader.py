"""yaml_loader — single entry point for parsing policy and values documents.

Global config, the rule catalog and override documents may be written as
YAML or JSON; JSON is a subset of YAML 1.2 for the documents prgate reads, so
both go through PyYAML's ``safe_load``.  Values files can carry several
``---`` separated documents, which ``load_documents`` returns as a list.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Union

import yaml


def load_yaml(path: Union[str, Path]) -> Any:
    """Load a YAML (or JSON) file.

    Returns:
        Parsed contents, or None if the file is empty.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file contains invalid YAML.
    """
    with open(path, "r", encoding="utf-8") as fh:
        return yaml.safe_load(fh)


def load_yaml_string(text: Union[str, bytes]) -> Any:
    """Parse a YAML (or JSON) string or UTF-8 byte string.

    Raises:
        yaml.YAMLError: If the text contains invalid YAML.
    """
    if isinstance(text, bytes):
        text = text.decode("utf-8")
    return yaml.safe_load(text)


def load_documents(text: str) -> list[Any]:
    """Parse every document of a multi-document YAML stream.

    Empty documents (``---`` with nothing after it) are dropped so that a
    trailing separator does not count as a change.

    Raises:
        yaml.YAMLError: If any document is invalid.
    """
    return [doc for doc in yaml.safe_load_all(text) if doc is not None]


def dump_canonical(documents: list[Any]) -> str:
    """Serialize documents with sorted keys so equal data dumps identically."""
    return yaml.safe_dump_all(
        documents,
        sort_keys=True,
        default_flow_style=False,
        allow_unicode=True,
    )
