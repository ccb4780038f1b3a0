from .system import SYSTEM_PROMPT, build_system_prompt

__all__ = ["SYSTEM_PROMPT", "build_system_prompt"]
