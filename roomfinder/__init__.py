"""Meeting room finder: availability resolution and booking over Microsoft Graph."""
