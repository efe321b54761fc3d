"""Content document model: schema, sanitizers, legacy decoder and background resolver."""
