from daybook.agent.answer import MAX_TOOL_ROUNDS, AnswerResult, AnswerSynthesizer

__all__ = ["MAX_TOOL_ROUNDS", "AnswerResult", "AnswerSynthesizer"]
