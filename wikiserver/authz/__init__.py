"""Per-wiki authorization.

Policy lives in the effective configuration under `wikis.<name>`:
- `public`: anyone can view
- `owner`: the identity name that created the wiki (can always view)
- `access`: level name -> list of capabilities (view, upload, ...)
"""
