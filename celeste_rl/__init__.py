"""
Lockstep bridge between a running Celeste instance and an external RL agent.

- bridge_interaction: host side (frame gate, observation capture, input injection, transport, session snapshot)
- agent_interaction: agent side protocol endpoint
- envs: Gymnasium environment built on the agent endpoint
"""
