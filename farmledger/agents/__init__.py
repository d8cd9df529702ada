"""AI agents package."""

from farmledger.agents.advisor import FarmAdvisor, build_prompt

__all__ = ["FarmAdvisor", "build_prompt"]
