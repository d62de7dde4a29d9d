"""mmstatus utils -- Logging-Helfer."""
