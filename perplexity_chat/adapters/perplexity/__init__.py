"""Perplexity chat completions: request building, transport and response extraction."""
