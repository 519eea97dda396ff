"""Birthday feature constants."""

# Startup: the cog waits for the bot's pool
DB_CONNECT_RETRIES = 5
DB_CONNECT_DELAY = 10.0
