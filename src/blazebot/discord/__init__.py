"""Discord bot integration for Blazebot.

The bot runs in-process with FastAPI, sharing the same event loop. A
ShardManager owns the live auto-sharded client and hands inbound events
to the CommandDispatcher.

Optional: if BOT_ENABLED is false, the app runs without Discord.
"""
