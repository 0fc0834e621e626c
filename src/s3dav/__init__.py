"""Serve an S3-compatible bucket as a WebDAV file share."""
