from celeste_rl.agent_interaction.agent_server import AgentServer

__all__ = ["AgentServer"]
