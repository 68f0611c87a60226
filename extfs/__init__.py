"""An ext-style block-group filesystem on a disk image, with an open-file table,
formatting helpers, a scheduler and semaphore model, keyboard decoding and a shell."""

__version__ = "0.1.0"