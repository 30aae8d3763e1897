from enum import IntEnum


class Scope(IntEnum):
    """Instance lifetime, ordered from shortest to longest."""

    VOLATILE = 0
    MANAGED = 1
    SINGLETON = 2
