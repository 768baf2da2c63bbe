"""
System prompts for the agents, and isolation of user-supplied text inside
the prompts built around it.
"""

from functools import lru_cache
from pathlib import Path

AGENTS_DIR = Path(__file__).resolve().parent

CONTEXT_FILES = {
    "writer": AGENTS_DIR / "narrative" / "context_writer.txt",
}


@lru_cache(maxsize=None)
def load_context(agent_name: str) -> str:
    """
    Persona prompt of an agent, read once per process.

    Raises:
        ValueError: unknown agent name
        FileNotFoundError: the prompt file is missing from the install
    """
    try:
        path = CONTEXT_FILES[agent_name]
    except KeyError:
        raise ValueError(f"No context for agent '{agent_name}', expected one of {sorted(CONTEXT_FILES)}") from None

    if not path.is_file():
        raise FileNotFoundError(f"Missing context file for '{agent_name}': {path}")
    return path.read_text(encoding="utf-8").strip()


def wrap_user_input(user_input: str, tag: str = "user_input") -> str:
    """
    Put free text from the user between <tag> markers so the model reads it
    as data. Angle brackets are escaped so the text cannot close the tag itself.
    """
    escaped = user_input.replace("<", "&lt;").replace(">", "&gt;")
    return f"<{tag}>\n{escaped}\n</{tag}>"
