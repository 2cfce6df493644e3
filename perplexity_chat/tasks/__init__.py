from perplexity_chat.tasks.chat_completion import ChatCompletionTask

__all__ = ["ChatCompletionTask"]
