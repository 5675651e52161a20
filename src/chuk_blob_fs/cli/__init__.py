"""Command-line tools for chuk_blob_fs."""
