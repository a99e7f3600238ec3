"""Conversation seeding for a generation run."""

from typing import Optional

from sandpit.constants import HISTORY_MESSAGE_LIMIT, ROLE_ASSISTANT, TYPE_ERROR
from sandpit.store import MessageRecord


class Conversation:
    """Builds the opening messages of a run from stored project history."""

    def __init__(self, system_prompt: str, max_history: int = HISTORY_MESSAGE_LIMIT):
        """Initialize conversation.

        Args:
            system_prompt: System prompt for the coding agent
            max_history: Maximum number of stored messages to replay
        """
        self.system_prompt = system_prompt
        self.max_history = max_history
        self.messages: list[dict] = []

    def add_history(self, records: list[MessageRecord]) -> None:
        """Replay stored messages, oldest first.

        Error markers are skipped; they carry no useful context for the model.

        Args:
            records: Stored messages, in any order
        """
        ordered = sorted(records, key=lambda r: r.created_at)[-self.max_history:]
        for record in ordered:
            if record.type == TYPE_ERROR:
                continue
            role = "assistant" if record.role == ROLE_ASSISTANT else "user"
            self.add_message(role, record.content)

    def add_message(self, role: str, content: str) -> None:
        # Consecutive same-role turns are merged so providers accept them
        if self.messages and self.messages[-1]["role"] == role:
            self.messages[-1]["content"] += f"\n\n{content}"
        else:
            self.messages.append({"role": role, "content": content})

    def to_messages(self, prompt: Optional[str] = None) -> list[dict]:
        """Convert to LLM message format.

        Args:
            prompt: Current user request, appended last

        Returns:
            List of message dictionaries starting with the system prompt
        """
        messages = [{"role": "system", "content": self.system_prompt}]
        messages.extend(dict(m) for m in self.messages)

        if prompt and not (messages[-1]["role"] == "user" and messages[-1]["content"].endswith(prompt)):
            if messages[-1]["role"] == "user":
                messages[-1]["content"] += f"\n\n{prompt}"
            else:
                messages.append({"role": "user", "content": prompt})

        # Providers require the first non-system turn to come from the user
        if len(messages) > 1 and messages[1]["role"] == "assistant":
            messages.insert(1, {"role": "user", "content": "(earlier conversation)"})

        return messages
