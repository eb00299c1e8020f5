"""refctl — locate ID/REF cross-references across files, buffers, and filenames."""

__version__ = "0.3.0"
