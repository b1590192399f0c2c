from .ass_builder import render_subtitle_track, write_subtitle_track

__all__ = ["render_subtitle_track", "write_subtitle_track"]
