"""Chunking, embedding and vector storage."""
