"""Forest position arithmetic, deletion transforms, leaf hashing and undo blocks."""

__all__ = ["utils", "transform", "hashes", "undo"]