"""
Command routing from clients to the upstream link.

The router validates a command and hands it to the link exactly once.
Failures are returned to the caller as CommandError subclasses with a
reason code; retrying is the caller's decision.
"""

from typing import Iterable, Optional

import structlog

from ..errors import InvalidCommandError, LinkDisconnectedError, UpstreamUnavailableError
from ..models.commands import Command, CommandAck
from ..upstream.link import UpstreamLink

logger = structlog.get_logger(__name__)


class CommandRouter:
    """Validates client commands and forwards them upstream."""

    def __init__(self, link: UpstreamLink, allowed: Optional[Iterable[str]] = None) -> None:
        self.link = link
        # Empty allow-list accepts any non-empty name
        self.allowed = frozenset(name.strip().lower() for name in (allowed or ()))

    def validate(self, command: Command) -> None:
        """
        Check a command before it is forwarded.

        Raises:
            InvalidCommandError: If the name is empty or not recognised
        """
        name = command.name.strip() if isinstance(command.name, str) else ""
        if not name:
            raise InvalidCommandError("Command is required", command=command.name)

        if self.allowed and name.lower() not in self.allowed:
            raise InvalidCommandError(
                f"Unknown command '{name}'",
                command=name,
                context={"allowed": sorted(self.allowed)}
            )

    async def handle(self, command: Command) -> CommandAck:
        """
        Validate and forward one command.

        Args:
            command: Command issued by a client

        Returns:
            Acknowledgement that the command was sent upstream

        Raises:
            InvalidCommandError: If validation fails
            UpstreamUnavailableError: If the upstream link is down
        """
        try:
            self.validate(command)
        except InvalidCommandError as e:
            logger.warning(
                "Rejected invalid command",
                command=command.name,
                session_id=command.session_id,
                error=str(e)
            )
            raise

        try:
            await self.link.send_command(command)
        except LinkDisconnectedError as e:
            logger.warning(
                "Command failed, upstream unavailable",
                command=command.name,
                session_id=command.session_id,
                link_state=e.state
            )
            raise UpstreamUnavailableError(
                "Upstream is unavailable",
                command=command.name,
                link_state=e.state
            ) from e

        return CommandAck(command=command.name, issued_at=command.issued_at)
