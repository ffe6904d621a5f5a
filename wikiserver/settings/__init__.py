"""Configuration layering: immutable defaults plus a persisted local override tree."""
