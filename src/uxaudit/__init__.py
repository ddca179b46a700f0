"""uxaudit - audit orchestration for third-party CLI projects."""

__version__ = "0.1.0"
