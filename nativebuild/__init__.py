"""nativebuild - keeps a generated mobile build project in sync with its app."""

__version__ = "0.1.0"
