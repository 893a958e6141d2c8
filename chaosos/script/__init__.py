"""
Script execution machinery behind chaosos.actions.script.

Leaves first: backup (copy the package aside and put it back), package
(local path or download), extract (tar into a fresh working directory),
entry (main/recover, shell/interpreted), record (run under `script`), sink
(upload, database, NFS or inline delivery of the transcript).
"""
