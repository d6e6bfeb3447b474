"""Receipt intake: image storage and AI extraction."""
