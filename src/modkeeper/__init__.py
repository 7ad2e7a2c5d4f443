"""modkeeper — keeps git submodules consistent and manages their lifecycle."""

__version__ = "0.1.0"
