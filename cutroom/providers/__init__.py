"""External providers: Mux (transcoding) and S3-compatible object storage."""
