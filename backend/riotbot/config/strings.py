# /riotbot/config/strings.py

# User-facing replies for the tutorial commands, kept in one place so they can
# be reworded without touching the session logic.

TUTORIAL_STARTING = "Starting tutorial"
TUTORIAL_RESTARTING = "Restarting tutorial"
