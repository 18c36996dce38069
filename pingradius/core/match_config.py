import os

# --------------------------------------------------
# ACTIVITY LIFETIME
# --------------------------------------------------

# Grace period past a ping's computed expiry before it disappears
ACTIVE_BUFFER_MINUTES = int(os.getenv("ACTIVE_BUFFER_MINUTES", "30"))

# --------------------------------------------------
# FEED
# --------------------------------------------------

# Single "nearby" boundary for every feed path
FEED_RADIUS_MILES = float(os.getenv("FEED_RADIUS_MILES", "50"))

# Most recent active pings / events pulled from each live snapshot
FEED_SNAPSHOT_LIMIT = int(os.getenv("FEED_SNAPSHOT_LIMIT", "5"))

# Items shown after merge + sort
FEED_DISPLAY_LIMIT = int(os.getenv("FEED_DISPLAY_LIMIT", "3"))

# --------------------------------------------------
# MOODS
# --------------------------------------------------

SEEKING_MOODS = frozenset({
    "Available",
    "Looking for Company",
    "Free to Chat",
    "Down to Chat",
    "Group Activities",
    "Food & Drinks?",
    "Sharing Stories",
    "Networking",
})

SELECTIVE_MOODS = frozenset({
    "Coffee Break",
    "Away",
    "Snack Time",
    "Local Cuisine",
    "Duty Free",
    "Lounge Access",
    "Gate Change",
})

# Never notified about new activities
UNAVAILABLE_MOODS = frozenset({
    "Busy",
    "Do Not Disturb",
    "Work Mode",
    "In a Meeting",
    "Conference Call",
    "Project Deadline",
    "Business Trip",
})

# --------------------------------------------------
# DEBUG MODE
# --------------------------------------------------

DEBUG_MATCH_LOGS = os.getenv("DEBUG_MATCH_LOGS", "true").lower() in ("1", "true", "yes")
