"""Contains utility functions for working with YAML files."""

from io import StringIO
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML

yaml = YAML(typ="safe")


def load_yaml_file(path: Path) -> Any:
    """Loads a YAML file and returns its parsed content."""
    with open(path, encoding="utf-8") as f:
        return yaml.load(f)


def dump_yaml_to_string(data: Any) -> str:
    """Dumps data to a block-style YAML string."""
    yaml_dumper = YAML()
    yaml_dumper.default_flow_style = False
    yaml_dumper.indent(mapping=2, sequence=4, offset=2)  # type: ignore[attr-defined]
    yaml_dumper.width = 4096
    stream = StringIO()
    yaml_dumper.dump(data, stream)
    return stream.getvalue()
