"""LLM-facing planning agents: generation, classification, apply and chat."""
