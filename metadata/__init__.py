from .types import ArchiveError, Format, InfoRecord, Subtitle, Video

__all__ = ["ArchiveError", "Format", "InfoRecord", "Subtitle", "Video"]
