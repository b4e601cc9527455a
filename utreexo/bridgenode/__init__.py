"""Amount and script compression, undo-file readers and proof/undo flat files."""

__all__ = ["compress", "rev", "flatfile"]