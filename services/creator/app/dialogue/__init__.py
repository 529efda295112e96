from .engine import DialogueGenerator, LLMDialogueGenerator, parse_dialogue_lines

__all__ = ["DialogueGenerator", "LLMDialogueGenerator", "parse_dialogue_lines"]
