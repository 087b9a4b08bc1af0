"""Turn uploaded bytes and remote URLs into plain document text."""
