"""
Prompt templates for the trading coach.

All prompts are designed to:
- Keep the coach conversational and mentor-like
- Never promise profit or certainty
- Always ask for a JSON object with a `memory_hint` field
"""

from typing import Any, Mapping, Optional, Sequence


DEFAULT_EXPERIENCE = "intermediate"
DEFAULT_STYLE = "day trading"
DEFAULT_RISK = "moderate"


class PromptBuilder:
    """
    Build the system prompt for an analysis request.
    """

    SYSTEM_BASE = """You are an experienced AI trading coach with deep expertise in markets, psychology, journaling, and risk.

The user may share chart screenshots, stats, notes, news, or free-form thoughts. Treat every message as part of an ongoing conversation.

Act like a mentor: respond naturally, add coaching notes about psychology or performance when useful, and ask for clarification when something is unclear. Never promise profit or certainty."""

    DETAILED_SCHEMA = """Provide detailed trading analysis. Always respond with valid JSON:
{
  "narrative": "Your detailed trading analysis and advice",
  "confluences": ["Positive technical signals if any"],
  "risks": ["Key risks to watch"],
  "scenarios": {"bull": "Bullish scenario", "bear": "Bearish scenario", "invalidation": "What invalidates the setup"},
  "checklist": ["3-5 action items for the trader"],
  "psychology_hint": "Trading psychology insight if relevant",
  "memory_hint": "Key insight about this trader's style/preferences to remember - ALWAYS include this field"
}"""

    QUICK_SCHEMA = """Provide conversational trading advice. Always respond with valid JSON:
{
  "narrative": "Your conversational trading advice",
  "memory_hint": "Key insight about this trader's style/preferences to remember - ALWAYS include this field"
}"""

    MEMORY_DIRECTIVE = "CRITICAL: Always include the memory_hint field. Use null if no specific insight."

    def build_system_prompt(
        self,
        memories: Optional[Sequence[str]] = None,
        request_analysis: bool = False,
        user_settings: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """
        Compose the system prompt.

        Args:
            memories: Memory notes, already ordered (newest first from the store)
            request_analysis: True for the detailed schema, False for quick chat
            user_settings: Stored settings row (any missing field uses a neutral default)

        Returns:
            Complete system prompt
        """
        sections = [self.SYSTEM_BASE]

        if user_settings is not None:
            sections.append(self.describe_trader(user_settings))

        if memories:
            sections.append(self.format_memories(memories))

        sections.append(self.DETAILED_SCHEMA if request_analysis else self.QUICK_SCHEMA)
        sections.append(self.MEMORY_DIRECTIVE)

        return "\n\n".join(sections)

    def describe_trader(self, user_settings: Mapping[str, Any]) -> str:
        experience = user_settings.get("trading_experience") or DEFAULT_EXPERIENCE
        style = user_settings.get("trading_style") or DEFAULT_STYLE
        risk = user_settings.get("risk_level") or DEFAULT_RISK
        return (
            f"You're working with a {experience} trader who prefers {style} "
            f"with {risk} risk tolerance."
        )

    def format_memories(self, memories: Sequence[str]) -> str:
        lines = ["What you remember about this trader:"]
        lines.extend(f"- {memory}" for memory in memories)
        return "\n".join(lines)
