"""mmstatus -- Mattermost-Presence nach Cron-Zeitplan setzen."""

__version__ = "1.0.0"
