"""Assistant persona loaded from YAML."""

from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel

_DEFAULT_PATH = Path(__file__).parent / "default.yaml"


class Persona(BaseModel):
    """Opening and closing text of the system directive."""

    name: str = "Assistant"
    system_prompt: str = "You are a helpful AI assistant."
    no_context_instruction: str = "If you don't know the answer based on the context, say so."


def load_persona(path: Path | str | None = None) -> Persona:
    """Load a persona from a YAML file.

    Args:
        path: Persona YAML file. Defaults to default.yaml in this directory.

    Raises:
        FileNotFoundError: If the persona file does not exist.
        yaml.YAMLError: If the file contains invalid YAML.
        pydantic.ValidationError: If a field has the wrong type.
    """
    config_path = Path(path) if path else _DEFAULT_PATH

    if not config_path.exists():
        raise FileNotFoundError(f"Persona file not found: {config_path}")

    with open(config_path, encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    return Persona.model_validate(
        {k: v.strip() if isinstance(v, str) else v for k, v in raw.items()}
    )


@lru_cache(maxsize=1)
def default_persona() -> Persona:
    return load_persona()
