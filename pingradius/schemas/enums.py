from enum import Enum

class ActivityKind(str, Enum):
    ping = "ping"
    event = "event"

class VisibilityType(str, Enum):
    open = "open"
    invite_only = "invite-only"
    friends_only = "friends-only"

class ConnectionStatus(str, Enum):
    pending = "pending"
    active = "active"

class NotificationCategory(str, Enum):
    activities = "activities"
    events = "events"
    chats = "chats"
    connections = "connections"
    announcements = "announcements"

class MoodCategory(str, Enum):
    seeking = "seeking"
    neutral = "neutral"
    selective = "selective"
    unavailable = "unavailable"

class Collection(str, Enum):
    users = "users"
    connections = "connections"
    pings = "pings"
    events = "events"

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
