"""Quiz-related constants shared across the core and API layers."""

BLANK_MARKER: str = "___"
NO_ANSWER: int = -1
TRUE_FALSE_OPTIONS: tuple[str, str] = ("True", "False")
MIN_MULTIPLE_CHOICE_OPTIONS: int = 2
MAX_SCORE: int = 100
