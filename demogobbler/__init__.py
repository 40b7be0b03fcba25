"""Reading and writing Source engine demo files."""

__version__ = "0.1.0"

__all__ = [
    "bitio",
    "datatables",
    "entity_state",
    "messages",
    "netwriter",
    "parser",
    "propstore",
    "version",
]