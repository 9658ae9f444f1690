from ems_moveup.rl.moveup_env import AgentMoveUpStrategy, MoveUpEnv

__all__ = ["AgentMoveUpStrategy", "MoveUpEnv"]
