"""sftpsync - Incremental, compressed directory mirroring over SFTP."""

__version__ = "0.1.0"
