"""
The `rendering` sub-package turns jail and host settings into the text of
the files poudriere and cron read: `<jail>-make.conf`, `<jail>.list`,
`poudriere.conf` and the per-jail cron.d entry.
"""
