"""
Catalog of BattlEye RCon administrative commands.

Members map a symbolic name to the literal command string understood by
the server. Parameters, where a command takes any, follow the literal
separated by spaces (see ``usage``).
"""

from enum import Enum


class BattlEyeCommand(str, Enum):
    """Known RCon commands."""

    def __new__(cls, literal: str, usage: str, description: str):
        obj = str.__new__(cls, literal)
        obj._value_ = literal
        obj.usage = usage
        obj.description = description
        return obj

    INIT = ("#init", "#init", "Reload server config file loaded by -config option")
    RESTART = ("#restart", "#restart", "Restart mission")
    REASSIGN = ("#reassign", "#reassign", "Start over and reassign roles")
    SHUTDOWN = ("#shutdown", "#shutdown", "Shut down the server")
    LOCK = ("#lock", "#lock", "Lock the server, preventing new clients from joining")
    UNLOCK = ("#unlock", "#unlock", "Unlock the server, allowing new clients to join")
    MISSION = ("#mission", "#mission <filename>", "Select mission with known name")
    MISSIONS = ("missions", "missions", "List the missions available on the server")
    PLAYERS = ("players", "players", "List players on the server including BE GUIDs and pings")
    SAY = ("say", "say <player#> <text>", "Say something to a player; -1 addresses everyone")
    KICK = ("kick", "kick <player#>", "Kick a player; # comes from the players list")
    RCON_PASSWORD = ("RConPassword", "RConPassword <password>", "Change the RCon password")
    MAX_PING = ("MaxPing", "MaxPing <ping>", "Change the MaxPing value; players above it are kicked")
    LOAD_SCRIPTS = ("loadScripts", "loadScripts", "Load scripts.txt without restarting the server")
    LOAD_EVENTS = ("loadEvents", "loadEvents", "(Re)load createvehicle.txt, remoteexec.txt and publicvariable.txt")
    LOAD_BANS = ("loadBans", "loadBans", "(Re)load the BE ban list from bans.txt")
    BANS = ("bans", "bans", "Show a list of all BE server bans")
    BAN = (
        "ban",
        "ban <player#> [minutes] [reason]",
        "Ban a player's BE GUID; no time or 0 means permanent",
    )
    ADD_BAN = (
        "addBan",
        "addBan <GUID> [minutes] [reason]",
        "Like ban, for a player not currently on the server",
    )
    REMOVE_BAN = ("removeBan", "removeBan <ban#>", "Remove a ban; # comes from the bans list")
    WRITE_BANS = ("writeBans", "writeBans", "Remove expired bans from the bans file")

    def __str__(self) -> str:
        return self.value


def build_command(command: "BattlEyeCommand | str", *params: object) -> str:
    """Join a command literal and its parameters into one command string."""
    literal = command.value if isinstance(command, BattlEyeCommand) else str(command)
    return " ".join([literal, *(str(p) for p in params)])


_BY_NAME = {member.name.lower(): member for member in BattlEyeCommand}
_BY_LITERAL = {member.value.lower(): member for member in BattlEyeCommand}


def lookup(name: str) -> BattlEyeCommand:
    """
    Find a command by member name or literal, case-insensitively.

    Raises:
        KeyError: Unknown command
    """
    key = name.strip().lower()
    member = _BY_NAME.get(key.replace("-", "_")) or _BY_LITERAL.get(key)
    if member is None:
        raise KeyError(f"Unknown command: {name!r}")
    return member
