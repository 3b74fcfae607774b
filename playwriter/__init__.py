"""playwriter: named browser sessions over CDP.

Modules, leaves first:
- common: errors, debug log, state files, config
- store: per-session record files
- browser: CDP attach, page selection, release
- profiles: cookie and local-storage profiles per domain
- launcher: free port, detached launcher process, readiness polling
- snapshot: region map, action deck, enriched report
- scripting: exec capability surface
- commands / main: CLI handlers and dispatch
"""
