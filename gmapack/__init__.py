"""
gmapack: reader, writer and in-place updater for addon (.gma) archives.

- Codec for the GMAD container (manifest, file table, payloads, CRC-32 trailer)
- Whitelist-gated archive model with an ignore list for tool metadata files
- Block-diff writer that rewrites only the changed parts of an existing file
- Session API returning explicit results, and a command line built on it
"""

__version__ = "0.1"

__all__ = [
    "constants",
    "whitelist",
    "model",
    "reader",
    "writer",
    "differ",
    "session",
]

# Programmatic API: gmapack.session.AddonSession for editing, or
# gmapack.reader.decode / gmapack.writer.encode for raw images.
