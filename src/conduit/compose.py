"""Composition helpers for common conduit configurations.

These helpers wire the orchestrator, the terminal manager and a transport
together so callers do not have to.
"""

from __future__ import annotations

from dataclasses import dataclass

from conduit.core.config import ConduitConfig, load_config
from conduit.core.pty import TerminalManager
from conduit.core.session import ProcessOrchestrator
from conduit.transport import InProcessTransport


@dataclass
class Standalone:
    """Everything needed to run conduit inside one process.

    Attributes:
        config: The resolved configuration.
        transport: Event sink shared by both components.
        orchestrator: One-shot CLI runs per session.
        terminals: Interactive and headless terminal sessions.
    """

    config: ConduitConfig
    transport: InProcessTransport
    orchestrator: ProcessOrchestrator
    terminals: TerminalManager

    async def aclose(self) -> None:
        """Abort all CLI runs and kill all terminals."""
        self.terminals.kill_all()
        await self.orchestrator.aclose()


def create_standalone(config: ConduitConfig | None = None) -> Standalone:
    """Create a standalone in-process conduit setup.

    Args:
        config: Configuration to use. Loaded with load_config() if None.

    Returns:
        Components sharing one InProcessTransport.

    Example:
        >>> app = create_standalone()
        >>> await app.orchestrator.send_message("chat-1", "Hello")
        >>> event = await app.transport.next_event(timeout=30)
        >>> await app.aclose()
    """
    config = config or load_config()
    transport = InProcessTransport()
    orchestrator = ProcessOrchestrator.from_config(config, event_sink=transport)
    terminals = TerminalManager(config.working_dir, settings=config.terminal, event_sink=transport)
    return Standalone(config=config, transport=transport, orchestrator=orchestrator, terminals=terminals)
