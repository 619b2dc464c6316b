# Default spawn point assigned to every new connection (x, y, z).
SPAWN_POINT: tuple[float, float, float] = (500, 500, 0)

# Broadcast rate in ticks per second.
DEFAULT_TICK_RATE = 30

# Generated room ids are short numeric strings.
ROOM_ID_LENGTH = 6
ROOM_ID_ALPHABET = "0123456789"

# Upper bound on attempts to find a free generated room id.
ROOM_ID_MAX_ATTEMPTS = 1000

OTHERS_MESSAGE_TYPE = "others"

__all__ = [
    "SPAWN_POINT",
    "DEFAULT_TICK_RATE",
    "ROOM_ID_LENGTH",
    "ROOM_ID_ALPHABET",
    "ROOM_ID_MAX_ATTEMPTS",
    "OTHERS_MESSAGE_TYPE",
]
